import os

import uvicorn

from runmate.check_ollama import check_ollama
from runmate.config import settings
from utils.logging_utils import get_tagged_logger, setup_logging

setup_logging(level=os.getenv("LOG_LEVEL", "INFO"))
logger = get_tagged_logger(__name__, tag="server")


def maybe_check_ollama() -> None:
    """
    Optionally run the Ollama preflight. Controlled by:
    - RUNMATE_SKIP_OLLAMA_CHECK=true to skip entirely (useful in dev/tests)
    - RUNMATE_OLLAMA_MODEL to pick the required model name.
    """
    if os.getenv("RUNMATE_SKIP_OLLAMA_CHECK", "false").lower() in ("1", "true", "yes"):
        logger.info("Skipping Ollama preflight (RUNMATE_SKIP_OLLAMA_CHECK=true)")
        return

    try:
        check_ollama(required_models=[settings.ollama_model], auto_pull=None)
    except SystemExit:
        logger.error("Ollama preflight failed; set RUNMATE_SKIP_OLLAMA_CHECK=true to bypass during dev/tests.")
        raise


if __name__ == "__main__":
    maybe_check_ollama()

    uvicorn.run(
        "runmate.main:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", 8000)),
        reload=False,
    )
