"""
Content-addressed ABI cache.

ABIs are stored once per content hash and addresses point at the hash of
their ABI, so a thousand tokens sharing one ERC20 interface cost one stored
ABI. Missing ABIs are fetched on demand from the remote fetcher; fetches are
serialized and followed by a fixed delay to respect explorer rate limits.
"""

import asyncio
import json
import logging
import weakref
from typing import Any, Dict, List, Optional, Tuple

from eth_utils import keccak, to_hex

from ..errors import ConfigurationError
from ...config.etherscan import DEFAULT_DELAY_TIME_MS

logger = logging.getLogger(__name__)

Abi = List[Dict[str, Any]]


def content_hash(abi: Abi) -> str:
    """
    Deterministic digest of an ABI.

    Args:
        abi: Contract ABI

    Returns:
        ``0x`` prefixed keccak-256 of the canonical JSON form
    """
    canonical = json.dumps(abi, sort_keys=True, separators=(",", ":"))
    return to_hex(keccak(text=canonical))


def is_readable_field(field: Dict[str, Any]) -> bool:
    """Whether a field is a view function callable without arguments."""
    return (
        bool(field.get("name"))
        and not field.get("inputs")
        and bool(field.get("outputs"))
        and field.get("stateMutability") == "view"
    )


def find_function(abi: Abi, name: str, arity: Optional[int] = None) -> Optional[Dict[str, Any]]:
    """
    Find a function entry by name.

    For overloaded functions the entry taking ``arity`` inputs wins,
    otherwise the first declared one.
    """
    candidates = [
        field
        for field in abi
        if field.get("name") == name and field.get("type", "function") == "function"
    ]
    if not candidates:
        return None
    if arity is not None:
        for field in candidates:
            if len(field.get("inputs", [])) == arity:
                return field
    return candidates[0]


class AbiStorage:
    """
    ABI cache shared by every execution of a :class:`BatchCall` engine.

    Entries are never evicted; call :meth:`reset` to drop everything.

    Args:
        fetcher: Remote fetcher used for addresses without a cached ABI,
            typically an :class:`EtherscanAbiFetcher`
        delay_time: Pause after each remote fetch, in milliseconds
    """

    def __init__(self, fetcher: Optional[Any] = None, delay_time: int = DEFAULT_DELAY_TIME_MS):
        self.fetcher = fetcher
        self.delay_time = delay_time
        self.remote_fetches = 0
        self._hash_by_address: Dict[str, str] = {}
        self._abi_by_hash: Dict[str, Abi] = {}
        # Event loop -> (fetch lock, in-flight fetches by address)
        self._loop_state = weakref.WeakKeyDictionary()

    def _state(self) -> Tuple[asyncio.Lock, Dict[str, asyncio.Future]]:
        """Fetch lock and in-flight fetches of the running event loop."""
        loop = asyncio.get_running_loop()
        state = self._loop_state.get(loop)
        if state is None:
            state = (asyncio.Lock(), {})
            self._loop_state[loop] = state
        return state

    @staticmethod
    def _key(address: str) -> str:
        return address.lower()

    def put(self, address: str, abi: Abi) -> str:
        """
        Cache ``abi`` for ``address``, replacing whatever was there.

        Returns:
            The content hash the address now points at
        """
        abi_hash = content_hash(abi)
        if abi_hash not in self._abi_by_hash:
            self._abi_by_hash[abi_hash] = abi
        self._hash_by_address[self._key(address)] = abi_hash
        return abi_hash

    def get(self, address: str) -> Optional[Abi]:
        """Get the cached ABI of an address, if any."""
        abi_hash = self._hash_by_address.get(self._key(address))
        if abi_hash is None:
            return None
        return self._abi_by_hash[abi_hash]

    def get_hash(self, address: str) -> Optional[str]:
        """Get the content hash of an address' cached ABI, if any."""
        return self._hash_by_address.get(self._key(address))

    def get_field(self, address: str, name: str, arity: Optional[int] = None) -> Optional[Dict[str, Any]]:
        """Get a function entry from an address' cached ABI."""
        abi = self.get(address)
        if abi is None:
            return None
        return find_function(abi, name, arity)

    def get_readable_fields(self, address: str) -> List[str]:
        """
        List the view functions of an address that take no arguments.

        Returns:
            Method names in ABI order, empty if nothing is cached
        """
        abi = self.get(address) or []
        names = []
        for field in abi:
            if is_readable_field(field) and field["name"] not in names:
                names.append(field["name"])
        return names

    async def ensure(self, address: str, abi: Optional[Abi] = None) -> None:
        """
        Make sure an ABI is cached for ``address``.

        A supplied ABI always overwrites the cache. Otherwise a cached ABI is
        kept as is and a missing one is fetched remotely. Concurrent calls for
        the same address share a single fetch; failed fetches are not cached.

        Raises:
            ConfigurationError: If the ABI is missing and cannot be fetched
                because no remote credential is configured
            RemoteLookupError: If the remote lookup fails
        """
        if abi is not None:
            self.put(address, abi)
            return

        if self.get(address) is not None:
            return

        if self.fetcher is None or not self.fetcher.has_credentials:
            raise ConfigurationError(
                f"No ABI cached or supplied for {address} and no Etherscan API key configured"
            )

        fetch_lock, in_flight = self._state()
        key = self._key(address)
        task = in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch(address, fetch_lock))
            in_flight[key] = task
            task.add_done_callback(lambda done: self._forget(in_flight, key, done))

        await asyncio.shield(task)

    @staticmethod
    def _forget(in_flight: Dict[str, asyncio.Future], key: str, task: asyncio.Future) -> None:
        if in_flight.get(key) is task:
            del in_flight[key]

    async def _fetch(self, address: str, fetch_lock: asyncio.Lock) -> Abi:
        async with fetch_lock:
            # Another request may have supplied it while we waited
            cached = self.get(address)
            if cached is not None:
                return cached

            abi = await asyncio.to_thread(self.fetcher.fetch, address)
            self.put(address, abi)
            self.remote_fetches += 1
            logger.info(f"Fetched ABI for {address} ({len(abi)} entries)")

            if self.delay_time:
                await asyncio.sleep(self.delay_time / 1000)
            return abi

    def reset(self) -> None:
        """Drop every cached ABI."""
        self._hash_by_address.clear()
        self._abi_by_hash.clear()

    def stats(self) -> Dict[str, int]:
        """Number of cached addresses and of distinct stored ABIs."""
        return {
            "addresses": len(self._hash_by_address),
            "abis": len(self._abi_by_hash),
        }
