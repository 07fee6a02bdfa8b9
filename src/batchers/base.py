"""
Base classes for blockchain batch calling.

This module provides the request/result data model of the batching engine
and the abstract interface of the contract-call collaborator that actually
encodes calls and talks to the RPC node.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from .errors import ValidationError

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "default"

# Completion callback for one call: (error, raw_value)
CallCallback = Callable[[Optional[Any], Any], None]


@dataclass
class MethodSpec:
    """A read method to invoke, with optional call arguments."""

    name: str
    args: Optional[List[Any]] = None
    constant: bool = False

    @classmethod
    def from_value(cls, value: Union["MethodSpec", str, Dict[str, Any]]) -> "MethodSpec":
        """Accept a MethodSpec, a bare method name or a ``{"name", "args"}`` dict."""
        if isinstance(value, MethodSpec):
            return value
        if isinstance(value, str):
            return cls(name=value)
        if isinstance(value, dict) and value.get("name"):
            args = value.get("args")
            return cls(
                name=value["name"],
                args=list(args) if args is not None else None,
                constant=bool(value.get("constant", False)),
            )
        raise ValidationError(f"Invalid read method: {value!r}")


@dataclass
class ContractGroup:
    """
    A set of contracts read with the same methods.

    Exactly one of ``addresses`` and ``contracts`` is populated. Items of
    ``contracts`` are bound contract handles exposing ``address`` and ``abi``
    (a web3 ``Contract`` instance works).
    """

    addresses: Optional[List[str]] = None
    contracts: Optional[List[Any]] = None
    namespace: str = DEFAULT_NAMESPACE
    read_methods: List[MethodSpec] = field(default_factory=list)
    all_read_methods: bool = False
    abi: Optional[List[Dict[str, Any]]] = None

    def __post_init__(self):
        if (self.addresses is None) == (self.contracts is None):
            raise ValidationError(
                "A contract group needs exactly one of 'addresses' or 'contracts'"
            )
        for name in ("addresses", "contracts", "read_methods"):
            value = getattr(self, name)
            if value is not None and not isinstance(value, (list, tuple)):
                raise ValidationError(f"'{name}' must be a list, got: {type(value).__name__}")
        if self.read_methods is None:
            raise ValidationError("'read_methods' must be a list, got: NoneType")
        if self.addresses is not None and not all(isinstance(a, str) for a in self.addresses):
            raise ValidationError("'addresses' must only hold address strings")
        self.read_methods = [MethodSpec.from_value(m) for m in self.read_methods]
        if not self.namespace:
            self.namespace = DEFAULT_NAMESPACE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ContractGroup":
        """Build a group from its plain-dict request form."""
        known = {"addresses", "contracts", "namespace", "read_methods", "all_read_methods", "abi"}
        unknown = set(data) - known
        if unknown:
            raise ValidationError(f"Unknown contract group keys: {sorted(unknown)}")
        return cls(**data)

    @property
    def is_contracts(self) -> bool:
        return self.contracts is not None

    def iter_targets(self):
        """Yield ``(address, abi)`` per target; abi is None for plain addresses."""
        if self.contracts is not None:
            for contract in self.contracts:
                yield contract.address, contract.abi
        else:
            for address in self.addresses:
                yield address, None


@dataclass
class BatchCallOptions:
    """Block sampling options for one execution."""

    block_height: int = 1
    block_resolution: int = 1

    def __post_init__(self):
        for name in ("block_height", "block_resolution"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ValidationError(f"{name} must be an integer >= 1, got: {value!r}")


@dataclass
class BlockSample:
    """A block to evaluate reads at; ``block_number=None`` means the head."""

    block_number: Optional[int]
    position: int


@dataclass
class CallDescriptor:
    """One eth_call: a method of an address evaluated at one block sample."""

    call_id: int
    address: str
    namespace: str
    method: str
    abi_field: Dict[str, Any]
    args: Optional[List[Any]]
    input: Optional[str]
    block_number: Optional[int]
    position: int

    @property
    def call_args(self) -> List[Any]:
        """Arguments actually sent, already truncated to the ABI arity."""
        return list(self.args or [])[: len(self.abi_field.get("inputs", []))]


@dataclass
class BlockValue:
    """A value read at a given block."""

    block_number: Optional[int]
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "block_number": self.block_number}


@dataclass
class CallResult:
    """All block samples of one (address, method, arguments) read."""

    call_id: int
    address: str
    namespace: str
    method: str
    args: Optional[List[Any]] = None
    input: Optional[str] = None
    values: List[BlockValue] = field(default_factory=list)


class RequestBatch(ABC):
    """A collection of calls flushed in one network round-trip."""

    @abstractmethod
    def add(self, descriptor: CallDescriptor, callback: CallCallback) -> None:
        """
        Queue a call.

        Args:
            descriptor: The call to make
            callback: Invoked once with ``(error, raw_value)`` when the call completes

        Raises:
            ContractError: If the call cannot be encoded
        """
        pass

    @abstractmethod
    async def execute(self) -> None:
        """Send every queued call at once and fire their callbacks."""
        pass


class CallBackend(ABC):
    """
    Contract-call collaborator used by the engine.

    Implementations know how to encode a call, submit a batch and report
    the block height. The engine never talks to the network itself.
    """

    @abstractmethod
    async def get_block_number(self) -> int:
        """Get the current chain head."""
        pass

    @abstractmethod
    def encode_input(self, abi_field: Dict[str, Any], args: List[Any]) -> str:
        """
        Encode call data for a function.

        Returns:
            ``0x`` prefixed hex call data

        Raises:
            ContractError: If the arguments do not fit the ABI
        """
        pass

    @abstractmethod
    def new_batch(self) -> RequestBatch:
        """Start an empty batch."""
        pass
