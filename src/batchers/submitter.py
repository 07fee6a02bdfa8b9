"""
Batch submission.

Queues every call descriptor on one collaborator batch, flushes the batch
once and turns the per-call callbacks into futures that are joined after
the flush.
"""

import asyncio
import functools
import logging
from typing import Any, Dict, List, Optional, Sequence

from .base import BlockValue, CallBackend, CallDescriptor, CallResult
from .errors import BatchSubmissionError, ContractError, ErrorHandler

logger = logging.getLogger(__name__)


class BatchSubmitter:
    """
    Submit call descriptors as a single network batch.

    A failing call resolves to ``None`` and is logged; the rest of the batch
    is unaffected. A failing flush fails the whole submission.

    Args:
        backend: Contract-call collaborator
    """

    def __init__(self, backend: CallBackend):
        self.backend = backend
        self.methods_invoked = 0
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")
        self.error_handler = ErrorHandler(self.logger)

    async def submit(self, descriptors: Sequence[CallDescriptor]) -> List[CallResult]:
        """
        Make every call in one round-trip.

        Args:
            descriptors: Calls to make

        Returns:
            One result per (address, method, arguments) read, with block
            values in requested block order

        Raises:
            BatchSubmissionError: If the batch could not be sent
        """
        loop = asyncio.get_running_loop()
        batch = self.backend.new_batch()
        futures: List[asyncio.Future] = []
        queued = 0

        for descriptor in descriptors:
            future = loop.create_future()
            futures.append(future)
            try:
                batch.add(descriptor, functools.partial(self._resolve, descriptor, future))
            except ContractError as e:
                self._log_failure(descriptor, e)
                future.set_result(None)
                continue
            queued += 1

        self.methods_invoked += queued

        if queued:
            try:
                await batch.execute()
            except Exception as e:
                self.logger.error(f"Batch call failed: {e}")
                raise BatchSubmissionError(f"Batch call failed: {e}") from e

        for descriptor, future in zip(descriptors, futures):
            if not future.done():
                self.logger.warning(
                    f"[BatchCall] {descriptor.address}: no response for {descriptor.method}"
                )
                future.set_result(None)

        values = await asyncio.gather(*futures)
        return self._collect(descriptors, values)

    def _resolve(
        self,
        descriptor: CallDescriptor,
        future: asyncio.Future,
        error: Optional[Any],
        value: Any,
    ) -> None:
        if future.done():
            return
        if error is not None:
            self._log_failure(descriptor, error)
            future.set_result(None)
        else:
            future.set_result(value)

    def _log_failure(self, descriptor: CallDescriptor, error: Any) -> None:
        self.error_handler.log_call_failure(
            descriptor.address, descriptor.method, descriptor.block_number, error
        )

    @staticmethod
    def _collect(
        descriptors: Sequence[CallDescriptor], values: Sequence[Any]
    ) -> List[CallResult]:
        """Group per-block values by call, ordered by block sample position."""
        results: Dict[int, CallResult] = {}
        positioned: Dict[int, List[tuple]] = {}

        for descriptor, value in zip(descriptors, values):
            if descriptor.call_id not in results:
                results[descriptor.call_id] = CallResult(
                    call_id=descriptor.call_id,
                    address=descriptor.address,
                    namespace=descriptor.namespace,
                    method=descriptor.method,
                    args=descriptor.args,
                    input=descriptor.input,
                )
                positioned[descriptor.call_id] = []
            positioned[descriptor.call_id].append(
                (descriptor.position, BlockValue(descriptor.block_number, value))
            )

        for call_id, result in results.items():
            result.values = [
                block_value
                for _, block_value in sorted(positioned[call_id], key=lambda item: item[0])
            ]

        return list(results.values())
