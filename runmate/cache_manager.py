"""
Per-user dashboard cache: reuse today's content while its inputs are unchanged,
otherwise regenerate once per user and persist the result in the background.
"""

from __future__ import annotations

import concurrent.futures
import threading
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Dict, Literal, Mapping, Optional, Tuple

import redis
from pydantic import ValidationError

from runmate.cache_store import CacheStore, InMemoryCacheStore, RedisCacheStore
from runmate.config import Settings, settings as default_settings
from runmate.errors import CacheStoreError
from runmate.models import CacheRecord, DashboardContent, DashboardInput, DashboardProfile, DetailedWeather, Fingerprint, WeatherUnit
from runmate.orchestrator import generate_dashboard_content
from runmate.weather_service import get_detailed_weather
from utils.logging_utils import get_tagged_logger, mask_url_secrets

logger = get_tagged_logger(__name__, tag="cache_manager")

CacheStatus = Literal["hit", "generated", "shared"]
WeatherResolver = Callable[[str, WeatherUnit], DetailedWeather]
Orchestrate = Callable[[DashboardInput], DashboardContent]


class SingleFlight:
    """
    Collapse concurrent calls for the same key into one execution.

    The first caller for a key (the leader) runs the function; callers that
    arrive while it is running block on the leader's Future and receive the
    same value or exception. The key is released once the leader finishes.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._inflight: Dict[str, concurrent.futures.Future] = {}

    def do(self, key: str, fn: Callable[[], Any]) -> Tuple[Any, bool]:
        """Run `fn` once per concurrent burst for `key`; returns (value, shared)."""
        with self._guard:
            future = self._inflight.get(key)
            leader = future is None
            if leader:
                future = concurrent.futures.Future()
                self._inflight[key] = future

        if not leader:
            return future.result(), True

        try:
            value = fn()
        except BaseException as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(value)
            return value, False
        finally:
            with self._guard:
                self._inflight.pop(key, None)

    def in_flight(self, key: str) -> bool:
        with self._guard:
            return key in self._inflight


def fingerprint_from_record(document: Mapping[str, Any] | None) -> Optional[Fingerprint]:
    """Fingerprint stored in a raw cache document, or None if absent or malformed."""
    if not document:
        return None
    raw = document.get("cachedInputs")
    if not isinstance(raw, Mapping):
        return None
    try:
        return Fingerprint.model_validate(raw)
    except ValidationError:
        return None


def is_cache_fresh(record: CacheRecord | None, fingerprint: Fingerprint, today: date) -> bool:
    """True when `record` was built today for exactly these inputs."""
    if record is None:
        return False
    return record.cache_date == today and record.cached_inputs == fingerprint


@dataclass
class DashboardResult:
    """Content for one page load and how it was obtained."""
    content: DashboardContent
    status: CacheStatus
    write: Optional[concurrent.futures.Future] = None


class DashboardCacheManager:
    """Decides reuse vs. regeneration and owns the single-flight and write pool."""

    def __init__(
        self,
        store: CacheStore,
        *,
        weather_resolver: WeatherResolver | None = None,
        orchestrate: Orchestrate | None = None,
        settings: Settings | None = None,
        executor: concurrent.futures.Executor | None = None,
    ) -> None:
        self.settings = settings or default_settings
        self.store = store
        self.weather_resolver = weather_resolver or get_detailed_weather
        self.orchestrate = orchestrate or generate_dashboard_content
        self.executor = executor or concurrent.futures.ThreadPoolExecutor(
            max_workers=self.settings.cache_write_workers,
            thread_name_prefix="dashboard-cache-write",
        )
        self.flights = SingleFlight()
        self._pending_guard = threading.Lock()
        self._pending: Dict[str, CacheRecord] = {}

    def cache_key(self, user_id: str) -> str:
        return f"{self.settings.cache_key_prefix}{user_id}"

    def load_record(self, user_id: str) -> Optional[CacheRecord]:
        """Read and parse the stored record; read errors and bad documents count as a miss."""
        try:
            document = self.store.get(self.cache_key(user_id))
        except CacheStoreError as exc:
            logger.warning("Dashboard cache read failed; treating as stale", extra={"user_id": user_id, "error": str(exc)})
            return None
        if document is None:
            return None
        try:
            return CacheRecord.model_validate(document)
        except ValidationError as exc:
            logger.warning(
                "Stored dashboard record is unreadable; treating as stale",
                extra={"user_id": user_id, "errors": exc.error_count()},
            )
            return None

    def pending_record(self, user_id: str) -> Optional[CacheRecord]:
        """Record whose background write has been submitted but not yet finished."""
        with self._pending_guard:
            return self._pending.get(user_id)

    def get_dashboard(self, profile: DashboardProfile, *, today: date | None = None) -> DashboardResult:
        """Return today's dashboard for `profile`, generating it if the cache is stale."""
        today = today or date.today()
        fingerprint = profile.fingerprint()

        record = self.pending_record(profile.user_id) or self.load_record(profile.user_id)
        if is_cache_fresh(record, fingerprint, today):
            logger.info("Dashboard cache hit", extra={"user_id": profile.user_id})
            return DashboardResult(content=record.content(), status="hit")

        logger.info(
            "Dashboard cache stale; regenerating",
            extra={"user_id": profile.user_id, "had_record": record is not None},
        )
        (content, write), shared = self.flights.do(
            profile.user_id, lambda: self._generate(profile, fingerprint, today)
        )
        if shared:
            return DashboardResult(content=content, status="shared")
        return DashboardResult(content=content, status="generated", write=write)

    def _generate(
        self, profile: DashboardProfile, fingerprint: Fingerprint, today: date
    ) -> Tuple[DashboardContent, Optional[concurrent.futures.Future]]:
        weather = self.weather_resolver(profile.location_city, profile.weather_unit)
        content = self.orchestrate(profile.to_dashboard_input(weather))
        record = CacheRecord(
            id=profile.user_id,
            user_id=profile.user_id,
            cache_date=today,
            cached_inputs=fingerprint,
            **content.model_dump(),
        )
        return content, self.persist_nowait(record)

    def persist_nowait(self, record: CacheRecord) -> Optional[concurrent.futures.Future]:
        """Submit a merge-upsert of `record` without waiting; failures are only logged."""
        key = self.cache_key(record.user_id)
        document = record.to_document()
        with self._pending_guard:
            self._pending[record.user_id] = record
        try:
            future = self.executor.submit(self._write, key, document, record)
        except RuntimeError as exc:
            self._release_pending(record)
            logger.error("Could not schedule dashboard cache write", extra={"user_id": record.user_id, "error": str(exc)})
            return None

        def _log_outcome(done: concurrent.futures.Future) -> None:
            exc = done.exception()
            if exc is not None:
                logger.error("Dashboard cache write failed", extra={"user_id": record.user_id, "error": str(exc)})
            else:
                logger.debug("Dashboard cache written", extra={"user_id": record.user_id})

        future.add_done_callback(_log_outcome)
        return future

    def _write(self, key: str, document: Dict[str, Any], record: CacheRecord) -> None:
        try:
            self.store.upsert_merge(key, document)
        finally:
            self._release_pending(record)

    def _release_pending(self, record: CacheRecord) -> None:
        # A newer record for the same user may have replaced this one.
        with self._pending_guard:
            if self._pending.get(record.user_id) is record:
                del self._pending[record.user_id]


def _init_store(settings: Settings) -> CacheStore:
    """Pick the backing store based on configuration."""
    logger.debug(f"Initializing dashboard cache store: redis_url='{mask_url_secrets(settings.cache_redis_url) if settings.cache_redis_url else 'None'}'")
    if settings.cache_redis_url:
        try:
            client = redis.Redis.from_url(settings.cache_redis_url)
            client.ping()
            logger.info("Using RedisCacheStore", extra={"redis_url": mask_url_secrets(settings.cache_redis_url)})
            return RedisCacheStore(client)
        except (redis.RedisError, ValueError) as exc:
            logger.warning("Falling back to InMemoryCacheStore (Redis unavailable)", extra={"error": str(exc)})
    return InMemoryCacheStore()


def build_dashboard_manager(settings: Settings | None = None) -> DashboardCacheManager:
    """Manager wired to the configured store and the default pipeline."""
    cfg = settings or default_settings
    return DashboardCacheManager(_init_store(cfg), settings=cfg)
