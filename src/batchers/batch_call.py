"""
Batched read calls against many contracts, methods and blocks.

:class:`BatchCall` takes a declarative request::

    [
        {
            "addresses": ["0x6B175474E89094C44Da98b954EedeAC495271d0F"],
            "namespace": "tokens",
            "read_methods": [
                {"name": "balanceOf", "args": ["0x5d3a536E4D6DbD6114cc1Ead35777bAB948E3643"]},
            ],
            "all_read_methods": True,
        },
    ]

expands it into one ``eth_call`` per address, method and sampled block,
sends them all in a single JSON-RPC batch and reshapes the answers into a
per-address result tree (see :mod:`src.batchers.reducer`).
"""

import asyncio
import logging
import time
from typing import Any, Dict, List, Optional, Sequence, Union

from web3 import AsyncWeb3

from .abi import AbiStorage, EtherscanAbiFetcher
from .base import BatchCallOptions, CallBackend, ContractGroup
from .errors import BatchError, ConfigurationError, NetworkError
from .expander import RequestExpander, build_block_samples
from .reducer import ResultTreeBuilder, group_by_namespace
from .submitter import BatchSubmitter
from .web3_backend import Web3BatchBackend
from ..config import ConfigError, ConfigManager, EtherscanConfig, get_config

logger = logging.getLogger(__name__)

BatchRequest = Sequence[Union[ContractGroup, Dict[str, Any]]]
ResultTree = Union[List[Dict[str, Any]], Dict[str, List[Dict[str, Any]]]]


class BatchCall:
    """
    Batching engine for read-only contract calls.

    The ABI cache lives as long as the engine and is shared by concurrent
    :meth:`execute` calls.

    Args:
        web3: AsyncWeb3 instance to read through
        provider: RPC endpoint url (or web3 provider) used when ``web3`` is not given
        backend: Contract-call collaborator, overrides ``web3`` and ``provider``
        group_by_namespace: Return ``{namespace: [nodes]}`` instead of a flat list
        simplify_response: Collapse methods with a single argument bucket to their value
        enable_logging: Log the number of calls made and the execution time
        etherscan: :class:`EtherscanConfig` or ``{"api_key": ..., "delay_time": ...}``
        clear_memory_after_execution: Reset the ABI cache after every execution
        abi_storage: ABI cache to use instead of a private one

    Raises:
        ConfigurationError: If no way to reach an RPC node is given
    """

    def __init__(
        self,
        web3: Optional[AsyncWeb3] = None,
        provider: Optional[Any] = None,
        backend: Optional[CallBackend] = None,
        group_by_namespace: bool = False,
        simplify_response: bool = False,
        enable_logging: bool = False,
        etherscan: Optional[Union[EtherscanConfig, Dict[str, Any]]] = None,
        clear_memory_after_execution: bool = False,
        abi_storage: Optional[AbiStorage] = None,
    ):
        self.backend = backend or self._create_backend(web3, provider)
        self.group_by_namespace = group_by_namespace
        self.simplify_response = simplify_response
        self.enable_logging = enable_logging
        self.clear_memory_after_execution = clear_memory_after_execution

        if abi_storage is None:
            etherscan_config = self._etherscan_config(etherscan)
            abi_storage = AbiStorage(
                EtherscanAbiFetcher(etherscan_config),
                delay_time=etherscan_config.delay_time,
            )
        self.abi_storage = abi_storage

    @staticmethod
    def _create_backend(web3: Optional[AsyncWeb3], provider: Optional[Any]) -> CallBackend:
        if web3 is not None:
            return Web3BatchBackend(web3)
        if isinstance(provider, str) and provider:
            return Web3BatchBackend.from_rpc_url(provider)
        if provider is not None:
            return Web3BatchBackend(AsyncWeb3(provider))
        raise ConfigurationError(
            "You need to either provide a web3 instance or a provider url"
        )

    @staticmethod
    def _etherscan_config(
        etherscan: Optional[Union[EtherscanConfig, Dict[str, Any]]]
    ) -> EtherscanConfig:
        if isinstance(etherscan, EtherscanConfig):
            return etherscan
        try:
            return EtherscanConfig.from_dict(etherscan)
        except ConfigError as e:
            raise ConfigurationError(f"Invalid etherscan options: {e}") from e

    @classmethod
    def from_config(
        cls,
        config: Optional[ConfigManager] = None,
        chain: Optional[str] = None,
        **kwargs,
    ) -> "BatchCall":
        """
        Create an engine from environment configuration.

        Args:
            config: Configuration manager (defaults to :func:`get_config`)
            chain: Chain to read from (defaults to ``DEFAULT_CHAIN``)
            kwargs: Other :class:`BatchCall` arguments
        """
        config = config or get_config()
        chain = chain or config.chains.DEFAULT_CHAIN
        try:
            rpc_url = config.chains.get_rpc_url(chain)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        kwargs.setdefault("provider", rpc_url)
        kwargs.setdefault("etherscan", config.get_etherscan_config(chain))
        return cls(**kwargs)

    async def execute(
        self,
        batch_request: BatchRequest,
        block_height: int = 1,
        block_resolution: int = 1,
    ) -> ResultTree:
        """
        Run a batch request.

        Args:
            batch_request: Contract groups, as :class:`ContractGroup` or dicts
            block_height: Number of blocks to sample, walking back from the head
            block_resolution: Distance between two sampled blocks

        Returns:
            The result tree, grouped by namespace when the engine was built
            with ``group_by_namespace``

        Raises:
            ValidationError: If the request or the options are malformed
            ConfigurationError: If an ABI is missing and cannot be fetched
            RemoteLookupError: If fetching an ABI failed
            NetworkError: If the chain head could not be read
            BatchSubmissionError: If the batch itself could not be sent; no
                partial result is returned
        """
        start_time = time.monotonic()
        options = BatchCallOptions(block_height=block_height, block_resolution=block_resolution)
        groups = [
            group if isinstance(group, ContractGroup) else ContractGroup.from_dict(group)
            for group in batch_request
        ]

        try:
            await self._warm_abi_cache(groups)

            current_block = await self._get_current_block()
            block_samples = build_block_samples(
                current_block, options.block_height, options.block_resolution
            )

            expander = RequestExpander(self.abi_storage, self.backend)
            descriptors = expander.expand(groups, block_samples)

            submitter = BatchSubmitter(self.backend)
            results = await submitter.submit(descriptors)
        finally:
            if self.clear_memory_after_execution:
                self.abi_storage.reset()

        tree = ResultTreeBuilder().add_all(results).build(self.simplify_response)
        if self.group_by_namespace:
            tree = group_by_namespace(tree)

        if self.enable_logging:
            execution_time = int((time.monotonic() - start_time) * 1000)
            logger.info(
                f"[BatchCall] methods: {submitter.methods_invoked}, "
                f"execution time: {execution_time} ms"
            )
            failures = submitter.error_handler.counts
            if failures:
                logger.info(f"[BatchCall] failed calls: {dict(failures)}")

        return tree

    async def _warm_abi_cache(self, groups: Sequence[ContractGroup]) -> None:
        """
        Cache every ABI the request needs before expanding it.

        Supplied ABIs (group ``abi`` or bound contract handles) are stored
        first, in request order. Remaining addresses are ensured concurrently.
        """
        for group in groups:
            for address, contract_abi in group.iter_targets():
                supplied = contract_abi if group.is_contracts else group.abi
                if supplied is not None:
                    self.abi_storage.put(address, supplied)

        pending = {}
        for group in groups:
            for address, contract_abi in group.iter_targets():
                supplied = contract_abi if group.is_contracts else group.abi
                if supplied is None and address.lower() not in pending:
                    pending[address.lower()] = self.abi_storage.ensure(address)

        if pending:
            await asyncio.gather(*pending.values())

    async def _get_current_block(self) -> int:
        """Get current block number."""
        try:
            return await self.backend.get_block_number()
        except BatchError:
            raise
        except Exception as e:
            logger.error(f"Failed to get current block: {e}")
            raise NetworkError(f"Failed to get current block: {e}") from e


async def batch_call(
    web3: AsyncWeb3,
    batch_request: BatchRequest,
    block_height: int = 1,
    block_resolution: int = 1,
    **options,
) -> ResultTree:
    """
    Convenience function to run a single batch request.

    Args:
        web3: AsyncWeb3 instance
        batch_request: Contract groups to read
        block_height: Number of blocks to sample
        block_resolution: Distance between two sampled blocks
        options: Other :class:`BatchCall` arguments

    Returns:
        The result tree
    """
    engine = BatchCall(web3=web3, **options)
    return await engine.execute(
        batch_request, block_height=block_height, block_resolution=block_resolution
    )
