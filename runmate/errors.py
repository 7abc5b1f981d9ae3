"""Exception types raised inside component boundaries.

None of these escape the public pipeline entry points: the weather and news
layers turn them into typed error payloads, the orchestrator turns
`GenerationError` into its fallback chain, and the cache manager treats
`CacheStoreError` as a miss.
"""

from __future__ import annotations


class GenerationError(RuntimeError):
    """The generation service produced no usable, schema-conformant output."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message)
        self.errors = list(errors or [])


class OpenMeteoError(RuntimeError):
    """Open-Meteo answered with an error payload instead of data."""


class CacheStoreError(RuntimeError):
    """Reading from or writing to the dashboard cache store failed."""
