"""
Request expansion.

Turns a declarative batch request (contract groups -> addresses -> methods)
into one :class:`CallDescriptor` per address, method and block sample.
"""

import itertools
import logging
from typing import List, Optional, Sequence, Set

from .abi.storage import AbiStorage
from .base import BlockSample, CallBackend, CallDescriptor, ContractGroup, MethodSpec
from .errors import ContractError

logger = logging.getLogger(__name__)


def build_block_samples(
    current_block: int, block_height: int = 1, block_resolution: int = 1
) -> List[BlockSample]:
    """
    Blocks to evaluate reads at, oldest first.

    Walks back from ``current_block`` in steps of ``block_resolution`` for
    ``block_height`` samples. Heights below zero are dropped.

    Example:
        ``build_block_samples(100, 3, 10)`` samples blocks 80, 90 and 100.
    """
    numbers = []
    for i in range(block_height):
        block_number = current_block - i * block_resolution
        if block_number < 0:
            break
        numbers.append(block_number)
    numbers.reverse()
    return [BlockSample(block_number=n, position=p) for p, n in enumerate(numbers)]


class RequestExpander:
    """
    Expand contract groups into call descriptors.

    ABIs are read from the cache only; the cache must already be warm for
    every address of the request.

    Args:
        abi_storage: ABI cache
        backend: Collaborator used to encode the input of calls with arguments
    """

    def __init__(self, abi_storage: AbiStorage, backend: CallBackend):
        self.abi_storage = abi_storage
        self.backend = backend
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def expand(
        self, groups: Sequence[ContractGroup], block_samples: Sequence[BlockSample]
    ) -> List[CallDescriptor]:
        """
        Build the descriptors of a whole batch request.

        Constant methods are read once per address: a later group reading
        an address already visited in this batch skips them. Methods missing
        from an address' ABI are skipped without error.

        Args:
            groups: Contract groups, in request order
            block_samples: Blocks to read every method at

        Returns:
            Descriptors grouped by (address, method) in request order
        """
        descriptors: List[CallDescriptor] = []
        visited: Set[str] = set()
        call_ids = itertools.count()

        for group in groups:
            for address, _ in group.iter_targets():
                already_read = address.lower() in visited
                for method in self._methods_for(group, address):
                    descriptors.extend(
                        self._expand_method(
                            next(call_ids), group, address, method, block_samples, already_read
                        )
                    )
                visited.add(address.lower())

        return descriptors

    def _methods_for(self, group: ContractGroup, address: str) -> List[MethodSpec]:
        methods = list(group.read_methods)
        if group.all_read_methods:
            listed = {m.name for m in methods if m.args is None}
            methods.extend(
                MethodSpec(name=name)
                for name in self.abi_storage.get_readable_fields(address)
                if name not in listed
            )
        return methods

    def _expand_method(
        self,
        call_id: int,
        group: ContractGroup,
        address: str,
        method: MethodSpec,
        block_samples: Sequence[BlockSample],
        already_read: bool,
    ) -> List[CallDescriptor]:
        arity = len(method.args) if method.args is not None else None
        abi_field = self.abi_storage.get_field(address, method.name, arity)
        if abi_field is None:
            self.logger.debug(f"{address}: no method '{method.name}' in ABI, skipping")
            return []

        if already_read and (method.constant or abi_field.get("constant")):
            return []

        input_data = self._encode_input(address, abi_field, method.args)
        return [
            CallDescriptor(
                call_id=call_id,
                address=address,
                namespace=group.namespace,
                method=method.name,
                abi_field=abi_field,
                args=method.args,
                input=input_data,
                block_number=sample.block_number,
                position=sample.position,
            )
            for sample in block_samples
        ]

    def _encode_input(
        self, address: str, abi_field: dict, args: Optional[list]
    ) -> Optional[str]:
        """Encoded call data, only for calls made with explicit arguments."""
        if args is None:
            return None
        call_args = list(args)[: len(abi_field.get("inputs", []))]
        try:
            return self.backend.encode_input(abi_field, call_args)
        except ContractError as e:
            self.logger.warning(f"{address}: cannot encode input of {abi_field['name']}: {e}")
            return None
