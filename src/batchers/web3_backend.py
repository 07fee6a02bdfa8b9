"""
web3.py implementation of the contract-call collaborator.

Calls are encoded with eth_abi, sent as ``eth_call`` requests in a single
JSON-RPC batch through the AsyncWeb3 provider, and decoded with eth_abi.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError, EncodingError
from eth_utils import function_abi_to_4byte_selector, to_checksum_address, to_hex
from eth_utils.abi import collapse_if_tuple
from hexbytes import HexBytes
from web3 import AsyncWeb3

from .base import CallBackend, CallCallback, CallDescriptor, RequestBatch
from .errors import ContractError, NetworkError

logger = logging.getLogger(__name__)


def abi_types(params: List[Dict[str, Any]]) -> List[str]:
    """Canonical eth_abi types of ABI inputs or outputs (tuples collapsed)."""
    return [collapse_if_tuple(param) for param in params]


def normalize_value(value: Any) -> Any:
    """Make decoded values JSON friendly: bytes become hex, tuples become lists."""
    if isinstance(value, (bytes, bytearray)):
        return to_hex(value)
    if isinstance(value, (list, tuple)):
        return [normalize_value(item) for item in value]
    return value


class Web3RequestBatch(RequestBatch):
    """eth_call requests queued for one JSON-RPC batch."""

    def __init__(self, backend: "Web3BatchBackend"):
        self.backend = backend
        self._queued: List[Tuple[CallDescriptor, CallCallback, List[Any]]] = []

    def __len__(self) -> int:
        return len(self._queued)

    def add(self, descriptor: CallDescriptor, callback: CallCallback) -> None:
        data = self.backend.encode_input(descriptor.abi_field, descriptor.call_args)
        try:
            to = to_checksum_address(descriptor.address)
        except ValueError as e:
            raise ContractError(f"Invalid address {descriptor.address}: {e}") from e

        block = "latest" if descriptor.block_number is None else hex(descriptor.block_number)
        self._queued.append((descriptor, callback, [{"to": to, "data": data}, block]))

    async def execute(self) -> None:
        if not self._queued:
            return

        requests = [("eth_call", params) for _, _, params in self._queued]
        responses = await self.backend.web3.provider.make_batch_request(requests)

        # A single response object instead of a list means the batch was rejected
        if not isinstance(responses, list):
            error = responses.get("error") if isinstance(responses, dict) else responses
            raise NetworkError(f"Batch request rejected: {error}")
        if len(responses) != len(self._queued):
            raise NetworkError(
                f"Batch returned {len(responses)} responses for {len(self._queued)} requests"
            )

        for (descriptor, callback, _), response in zip(self._queued, responses):
            error = response.get("error")
            if error is not None:
                callback(error, None)
                continue
            try:
                value = self.backend.decode_output(descriptor.abi_field, response.get("result"))
            except ContractError as e:
                callback(e, None)
                continue
            callback(None, value)


class Web3BatchBackend(CallBackend):
    """
    Contract-call collaborator backed by an ``AsyncWeb3`` instance.

    Args:
        web3: AsyncWeb3 connected to the node to read from
    """

    def __init__(self, web3: AsyncWeb3):
        self.web3 = web3

    @classmethod
    def from_rpc_url(cls, rpc_url: str) -> "Web3BatchBackend":
        """Create a backend talking to ``rpc_url`` over HTTP."""
        return cls(AsyncWeb3(AsyncWeb3.AsyncHTTPProvider(rpc_url)))

    async def get_block_number(self) -> int:
        return await self.web3.eth.block_number

    def encode_input(self, abi_field: Dict[str, Any], args: List[Any]) -> str:
        try:
            selector = function_abi_to_4byte_selector(abi_field)
            encoded = encode(abi_types(abi_field.get("inputs", [])), list(args))
        except (EncodingError, TypeError, ValueError) as e:
            raise ContractError(f"Cannot encode {abi_field.get('name')}{tuple(args)}: {e}") from e
        return to_hex(selector + encoded)

    def decode_output(self, abi_field: Dict[str, Any], result: Optional[str]) -> Any:
        """
        Decode the return data of a call.

        A single output is unwrapped, several outputs come back as a list.

        Raises:
            ContractError: If the return data does not match the ABI
        """
        output_types = abi_types(abi_field.get("outputs", []))
        if not output_types:
            return None
        try:
            decoded = decode(output_types, HexBytes(result or "0x"))
        except (DecodingError, TypeError, ValueError) as e:
            raise ContractError(f"Cannot decode {abi_field.get('name')} output: {e}") from e

        if len(decoded) == 1:
            return normalize_value(decoded[0])
        return normalize_value(decoded)

    def new_batch(self) -> Web3RequestBatch:
        return Web3RequestBatch(self)
