"""ENS text record lookups.  Policy-unaware: parsing happens in core/policy.py.

Sources (selected by the caller):
  - EnsTextRecordSource     →  web3.py AsyncENS over ETH_RPC_URL (mainnet ENS)
  - StaticTextRecordSource  →  in-memory records for tests and offline runs
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Mapping

from ens import AsyncENS
from ens.exceptions import InvalidName, ResolverNotFound
from ens.utils import normalize_name
from web3 import AsyncHTTPProvider, AsyncWeb3

logger = logging.getLogger(__name__)


class RecordFetchError(Exception):
    """A text record could not be read for a reason retrying will not fix."""


class NameNotFound(RecordFetchError):
    """The name has no resolver (unregistered or not configured)."""


class InvalidEnsName(RecordFetchError):
    """The name fails ENSIP-15 normalization."""


def normalize_ens_name(name: str) -> str:
    """Return the ENSIP-15 normalized form of *name*.  Raises InvalidEnsName."""
    if not name or not name.strip():
        raise InvalidEnsName("ENS name must not be empty")
    try:
        return normalize_name(name.strip())
    except InvalidName as exc:
        raise InvalidEnsName(f"Invalid ENS name {name!r}: {exc}") from exc


class TextRecordSource(ABC):
    """Abstract reader of a single text record."""

    @abstractmethod
    async def get_text(self, name: str, key: str) -> str | None:
        """Return the record value, or None if it is unset."""
        raise NotImplementedError


class EnsTextRecordSource(TextRecordSource):
    """Reads text records through the name's public resolver."""

    def __init__(self, rpc_url: str) -> None:
        self._rpc_url = rpc_url
        self._w3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
        self._ens = AsyncENS.from_web3(self._w3)
        logger.info("EnsTextRecordSource: using RPC %s", rpc_url)

    async def get_text(self, name: str, key: str) -> str | None:
        logger.debug("reading text record %s for %s", key, name)
        try:
            value = await self._ens.get_text(name, key)
        except ResolverNotFound as exc:
            raise NameNotFound(f"No resolver found for {name}") from exc
        return value or None


class StaticTextRecordSource(TextRecordSource):
    """In-memory records keyed by normalized name.  Unknown names raise NameNotFound."""

    def __init__(self, records: Mapping[str, Mapping[str, str]]) -> None:
        self._records = {normalize_ens_name(n): dict(r) for n, r in records.items()}
        self.fetch_count = 0

    async def get_text(self, name: str, key: str) -> str | None:
        self.fetch_count += 1
        if name not in self._records:
            raise NameNotFound(f"No resolver found for {name}")
        return self._records[name].get(key) or None
