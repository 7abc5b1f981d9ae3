"""Reachability probe and startup preflight for the Ollama generation backend."""

import os
import sys
from typing import Any, Dict, Iterable, Optional

import requests

from .config import settings
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="check_ollama")

# RUNMATE_AUTO_PULL_OLLAMA_MODELS=true|false
_AUTO_PULL_DEFAULT = os.getenv("RUNMATE_AUTO_PULL_OLLAMA_MODELS", "false").lower() in ("1", "true", "yes")


def _tags_url() -> str:
    return f"{settings.ollama_base_url}/api/tags"


def _pull_url() -> str:
    return f"{settings.ollama_base_url}/api/pull"


def _installed_model_names(tags_json: dict) -> set[str]:
    """Model names from /api/tags, each also under its untagged base name."""
    names: set[str] = set()
    for m in tags_json.get("models", []):
        name = m.get("name")
        if not name:
            continue
        names.add(name)
        names.add(name.split(":")[0])
    return names


def get_ollama_status(required_models: Optional[Iterable[str]] = None) -> Dict[str, Any]:
    """
    Non-fatal probe of Ollama, suitable for the health endpoint.

    Returns ``{"ok", "reachable", "base_url", "installed_models",
    "required_models", "missing_models", "models_ok", "error"}``.
    """
    required_models = list(required_models or [])
    status: Dict[str, Any] = {
        "ok": False,
        "reachable": False,
        "base_url": settings.ollama_base_url,
        "installed_models": [],
        "required_models": required_models,
        "missing_models": [],
        "models_ok": False,
        "error": None,
    }

    try:
        resp = requests.get(_tags_url(), timeout=3)
        resp.raise_for_status()
        tags = resp.json()
    except (requests.exceptions.RequestException, ValueError) as e:
        status["error"] = str(e)
        return status

    status["reachable"] = True
    installed = _installed_model_names(tags)
    status["installed_models"] = sorted(installed)

    missing = [m for m in required_models if m not in installed]
    status["missing_models"] = missing
    status["models_ok"] = not missing
    status["ok"] = status["models_ok"]
    return status


def _pull_model(name: str) -> None:
    """Block on /api/pull for `name`; exits the process if the pull fails."""
    logger.info(f"Model '{name}' not found; requesting Ollama to pull it...")
    try:
        with requests.post(_pull_url(), json={"name": name}, stream=True, timeout=None) as resp:
            resp.raise_for_status()
            for line in resp.iter_lines():
                if line and b'"status"' in line:
                    logger.info(f"   [ollama] {line.decode('utf-8', errors='replace')}")
    except requests.exceptions.RequestException as e:
        logger.error(f"Failed to pull Ollama model '{name}': {e}. Try `ollama pull {name}` manually.")
        sys.exit(1)

    if not get_ollama_status(required_models=[name]).get("models_ok"):
        logger.error(f"Model '{name}' still not visible after pull.")
        sys.exit(1)
    logger.info(f"Model '{name}' is now available.")


def check_ollama(required_models: Optional[Iterable[str]] = None, auto_pull: Optional[bool] = None) -> None:
    """
    Startup preflight: exit(1) if Ollama is unreachable or required models are
    missing and cannot be pulled.
    """
    if auto_pull is None:
        auto_pull = _AUTO_PULL_DEFAULT

    required_models = list(required_models or [])
    status = get_ollama_status(required_models=required_models)

    if not status["reachable"]:
        logger.error(f"Ollama does not appear to be running or is unreachable. Tried: {_tags_url()}")
        if status["error"]:
            logger.error(f"   Details: {status['error']}")
        sys.exit(1)

    missing = status["missing_models"]
    if not missing:
        logger.info(f"Ollama reachable at {settings.ollama_base_url}")
        return

    if auto_pull:
        for name in missing:
            _pull_model(name)
        return

    logger.error(f"Required Ollama models are not installed: {', '.join(missing)}")
    for m in missing:
        logger.error(f"   ollama pull {m}")
    sys.exit(1)
