"""Resolve an ENS name into a validated, cached spending policy."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable

from tenacity import AsyncRetrying, retry_if_not_exception_type, stop_after_attempt, wait_exponential
from tenacity.wait import wait_base

from core.config import EnsConfig
from core.policy import ALLOWED_ACTIONS_KEY, MAX_SPEND_KEY, POLICY_KEYS, Policy, parse_policy
from core.policy_cache import PolicyCache
from tools.ens_tool import (
    EnsTextRecordSource,
    InvalidEnsName,
    NameNotFound,
    RecordFetchError,
    TextRecordSource,
    normalize_ens_name,
)

logger = logging.getLogger(__name__)


REQUIRED_KEYS = (MAX_SPEND_KEY, ALLOWED_ACTIONS_KEY)


class ResolutionError(Exception):
    """The name could not be resolved: bad name, no resolver, or network failure."""


def _describe(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}" if str(exc) else type(exc).__name__


class PolicyResolver:
    def __init__(
        self,
        source: TextRecordSource,
        cache: PolicyCache | None = None,
        *,
        fetch_timeout: float = 10.0,
        fetch_attempts: int = 3,
        retry_wait: wait_base | None = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.source = source
        self.cache = cache if cache is not None else PolicyCache()
        self._fetch_timeout = fetch_timeout
        self._fetch_attempts = max(1, fetch_attempts)
        self._retry_wait = retry_wait or wait_exponential(multiplier=0.5, min=0.5, max=5)
        self._now = now

    @classmethod
    def from_config(cls, config: EnsConfig, source: TextRecordSource | None = None) -> PolicyResolver:
        return cls(
            source or EnsTextRecordSource(config.rpc_url),
            PolicyCache(ttl_seconds=config.cache_ttl_seconds),
            fetch_timeout=config.fetch_timeout_seconds,
            fetch_attempts=config.fetch_attempts,
        )

    # ── public API ────────────────────────────────────────────────

    async def resolve(self, name: str) -> Policy:
        """Return the policy for *name*.  Raises PolicyError or ResolutionError."""
        try:
            normalized = normalize_ens_name(name)
        except InvalidEnsName as exc:
            raise ResolutionError(str(exc)) from exc

        cached = self.cache.get(normalized)
        if cached is not None:
            logger.info("using cached policy for %s", normalized)
            return cached

        logger.info("resolving policy for %s …", normalized)
        records = await self._fetch_records(normalized)
        policy = parse_policy(normalized, records, fetched_at=self._now())
        self.cache.put(normalized, policy)
        logger.info(
            "  → maxSpend=%s actions=%s version=%s fingerprint=%s",
            policy.max_spend,
            ",".join(policy.allowed_actions),
            policy.version,
            policy.fingerprint,
        )
        return policy

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("policy cache cleared")

    # ── fetching ──────────────────────────────────────────────────

    async def _fetch_records(self, name: str) -> dict[str, str]:
        """Fetch all policy keys concurrently.

        A failed read leaves its key absent, except that a network failure on a
        required key is a ResolutionError rather than a missing-record PolicyError.
        """
        results = await asyncio.gather(
            *(self._fetch_record(name, key) for key in POLICY_KEYS),
            return_exceptions=True,
        )

        records: dict[str, str] = {}
        failures: dict[str, Exception] = {}
        for key, result in zip(POLICY_KEYS, results):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning("failed to read %s for %s: %s", key, name, _describe(result))
                failures[key] = result
            elif result:
                records[key] = result

        if len(failures) == len(POLICY_KEYS):
            exc = next((f for f in failures.values() if isinstance(f, NameNotFound)), None)
            exc = exc or next(iter(failures.values()))
            raise ResolutionError(f"Failed to resolve ENS name {name}: {_describe(exc)}") from exc

        for key in REQUIRED_KEYS:
            exc = failures.get(key)
            if exc is not None and not isinstance(exc, RecordFetchError):
                raise ResolutionError(f"Failed to read {key} for {name}: {_describe(exc)}") from exc
        return records

    async def _fetch_record(self, name: str, key: str) -> str | None:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._fetch_attempts),
            wait=self._retry_wait,
            retry=retry_if_not_exception_type(RecordFetchError),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.info("  retrying %s for %s (attempt %d)", key, name, attempt.retry_state.attempt_number)
                return await asyncio.wait_for(self.source.get_text(name, key), timeout=self._fetch_timeout)
        return None  # pragma: no cover - AsyncRetrying always returns or raises
