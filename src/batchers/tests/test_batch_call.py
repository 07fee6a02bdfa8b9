"""End-to-end tests for the batch engine with a fake contract-call collaborator."""
import asyncio
import logging
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest
from eth_abi import encode
from eth_utils import to_hex

from src.batchers import BatchCall, batch_call
from src.batchers.abi.etherscan import EtherscanAbiFetcher
from src.batchers.abi.storage import AbiStorage
from src.batchers.errors import (
    BatchSubmissionError,
    ConfigurationError,
    RemoteLookupError,
    ValidationError,
)
from src.batchers.tests._fakes import DAI, ERC20_ABI, HEAD_BLOCK, HOLDER, USDC, WETH
from src.batchers.web3_backend import Web3BatchBackend
from src.config import ConfigManager, EtherscanConfig


@pytest.fixture
def engine(backend, abi_storage):
    return BatchCall(backend=backend, abi_storage=abi_storage)


class TestBatchCallConstruction:
    """Test cases for engine construction."""

    def test_requires_a_way_to_reach_a_node(self):
        with pytest.raises(ConfigurationError, match="web3 instance or a provider url"):
            BatchCall()

    def test_provider_url(self):
        engine = BatchCall(
            provider="http://localhost:8545", etherscan={"api_key": "KEY", "delay_time": 50}
        )

        assert isinstance(engine.backend, Web3BatchBackend)
        assert isinstance(engine.abi_storage.fetcher, EtherscanAbiFetcher)
        assert engine.abi_storage.fetcher.has_credentials
        assert engine.abi_storage.delay_time == 50

    def test_etherscan_config_instance(self, backend):
        config = EtherscanConfig(api_key="KEY", delay_time=0)

        engine = BatchCall(backend=backend, etherscan=config)

        assert engine.abi_storage.fetcher.config is config

    def test_invalid_etherscan_options(self, backend):
        with pytest.raises(ConfigurationError):
            BatchCall(backend=backend, etherscan={"apiKey": "KEY"})

    def test_construction_ignores_application_environment(self, backend, monkeypatch):
        monkeypatch.setenv("ENVIRONMENT", "test")
        root_handlers = list(logging.getLogger().handlers)

        engine = BatchCall(backend=backend)

        assert isinstance(engine.abi_storage.fetcher, EtherscanAbiFetcher)
        assert logging.getLogger().handlers == root_handlers

    def test_from_config(self, monkeypatch):
        monkeypatch.setenv("ETHERSCAN_API_KEY", "KEY")
        monkeypatch.delenv("ETHERSCAN_API_URL", raising=False)

        engine = BatchCall.from_config(ConfigManager(), chain="base", simplify_response=True)

        assert isinstance(engine.backend, Web3BatchBackend)
        assert engine.simplify_response is True
        assert engine.abi_storage.fetcher.config.api_url == "https://api.basescan.org/api"

    def test_from_config_unknown_chain(self):
        with pytest.raises(ConfigurationError):
            BatchCall.from_config(ConfigManager(), chain="solana")


class TestBatchCallExecute:
    """Test cases for BatchCall.execute."""

    @pytest.mark.asyncio
    async def test_head_read_yields_bare_value(self, engine, backend):
        result = await engine.execute(
            [{"addresses": [DAI], "read_methods": ["totalSupply", "decimals"]}]
        )

        assert result == [
            {
                "address": DAI,
                "namespace": "default",
                "totalSupply": [{"value": f"totalSupply@{HEAD_BLOCK}"}],
                "decimals": [{"value": f"decimals@{HEAD_BLOCK}"}],
            }
        ]
        assert backend.executions == 1

    @pytest.mark.asyncio
    async def test_block_samples_increase(self, engine):
        result = await engine.execute(
            [{"addresses": [DAI], "read_methods": [{"name": "totalSupply"}]}],
            block_height=3,
            block_resolution=1,
        )

        values = result[0]["totalSupply"][0]["values"]
        blocks = [v["block_number"] for v in values]
        assert blocks == [HEAD_BLOCK - 2, HEAD_BLOCK - 1, HEAD_BLOCK]
        assert [v["value"] for v in values] == [f"totalSupply@{b}" for b in blocks]

    @pytest.mark.asyncio
    async def test_missing_abi_without_credentials(self, backend):
        engine = BatchCall(backend=backend, etherscan={"api_key": None, "delay_time": 0})

        with pytest.raises(ConfigurationError):
            await engine.execute([{"addresses": [WETH], "read_methods": ["totalSupply"]}])

        assert backend.block_number_requests == 0
        assert backend.executions == 0

    @pytest.mark.asyncio
    async def test_simplify_response(self, backend, abi_storage):
        engine = BatchCall(backend=backend, abi_storage=abi_storage, simplify_response=True)

        result = await engine.execute(
            [{"addresses": [DAI], "namespace": "tokens", "read_methods": ["decimals"]}]
        )

        assert result == [
            {"address": DAI, "namespace": "tokens", "decimals": f"decimals@{HEAD_BLOCK}"}
        ]

    @pytest.mark.asyncio
    async def test_group_by_namespace(self, backend, abi_storage):
        engine = BatchCall(
            backend=backend,
            abi_storage=abi_storage,
            group_by_namespace=True,
            simplify_response=True,
        )

        result = await engine.execute(
            [
                {"addresses": [DAI], "namespace": "dai", "read_methods": ["decimals"]},
                {"addresses": [USDC], "namespace": "usdc", "read_methods": ["decimals"]},
            ]
        )

        assert result == {
            "dai": [{"address": DAI, "decimals": f"decimals@{HEAD_BLOCK}"}],
            "usdc": [{"address": USDC, "decimals": f"decimals@{HEAD_BLOCK}"}],
        }

    @pytest.mark.asyncio
    async def test_absent_method_leaves_no_entry(self, engine, backend):
        result = await engine.execute(
            [{"addresses": [DAI], "read_methods": ["nope", "decimals"]}]
        )

        assert "nope" not in result[0]
        assert [call.method for call in backend.calls] == ["decimals"]

    @pytest.mark.asyncio
    async def test_constant_read_once_across_groups(self, engine, backend):
        result = await engine.execute(
            [
                {"addresses": [DAI], "namespace": "a", "all_read_methods": True},
                {"addresses": [DAI], "namespace": "b", "all_read_methods": True},
            ]
        )

        methods = [call.method for call in backend.calls]
        assert methods.count("name") == 1
        assert methods.count("decimals") == 1
        assert methods.count("totalSupply") == 2
        assert len(result) == 1

    @pytest.mark.asyncio
    async def test_arguments_and_input(self, engine):
        result = await engine.execute(
            [
                {
                    "addresses": [DAI],
                    "read_methods": [
                        {"name": "balanceOf", "args": [HOLDER]},
                        {"name": "balanceOf", "args": [USDC]},
                    ],
                }
            ]
        )

        assert result[0]["balanceOf"] == [
            {
                "value": f"balanceOf@{HEAD_BLOCK}",
                "input": f"0xbalanceOf:{HOLDER}",
                "args": [HOLDER],
            },
            {
                "value": f"balanceOf@{HEAD_BLOCK}",
                "input": f"0xbalanceOf:{USDC}",
                "args": [USDC],
            },
        ]

    @pytest.mark.asyncio
    async def test_supplied_abi_is_cached(self, backend):
        storage = AbiStorage(delay_time=0)
        engine = BatchCall(backend=backend, abi_storage=storage)

        await engine.execute(
            [{"addresses": [WETH, DAI], "abi": ERC20_ABI, "read_methods": ["decimals"]}]
        )

        assert storage.get(WETH) == ERC20_ABI
        assert storage.stats() == {"addresses": 2, "abis": 1}

    @pytest.mark.asyncio
    async def test_contract_handles(self, backend):
        storage = AbiStorage(delay_time=0)
        engine = BatchCall(backend=backend, abi_storage=storage, simplify_response=True)
        handle = SimpleNamespace(address=WETH, abi=ERC20_ABI)

        result = await engine.execute([{"contracts": [handle], "read_methods": ["decimals"]}])

        assert result == [
            {"address": WETH, "namespace": "default", "decimals": f"decimals@{HEAD_BLOCK}"}
        ]

    @pytest.mark.asyncio
    async def test_fetches_missing_abi_once(self, backend):
        fetcher = Mock()
        fetcher.has_credentials = True
        fetcher.fetch = Mock(return_value=ERC20_ABI)
        engine = BatchCall(backend=backend, abi_storage=AbiStorage(fetcher, delay_time=0))
        request = [
            {"addresses": [WETH], "read_methods": ["decimals"]},
            {"addresses": [WETH], "namespace": "again", "read_methods": ["totalSupply"]},
        ]

        await engine.execute(request)
        await engine.execute(request)

        fetcher.fetch.assert_called_once_with(WETH)

    def test_executions_in_separate_event_loops(self, backend):
        fetcher = Mock()
        fetcher.has_credentials = True
        fetcher.fetch = Mock(side_effect=[ERC20_ABI, ERC20_ABI[:5], ERC20_ABI[:4], ERC20_ABI[:3]])
        engine = BatchCall(backend=backend, abi_storage=AbiStorage(fetcher, delay_time=10))

        first = asyncio.run(
            engine.execute([{"addresses": [DAI, USDC], "read_methods": ["totalSupply"]}])
        )
        second = asyncio.run(
            engine.execute([{"addresses": [WETH, HOLDER], "read_methods": ["totalSupply"]}])
        )

        assert [node["address"] for node in first + second] == [DAI, USDC, WETH, HOLDER]
        assert fetcher.fetch.call_count == 4

    @pytest.mark.asyncio
    async def test_remote_lookup_failure_propagates(self, backend):
        fetcher = Mock()
        fetcher.has_credentials = True
        fetcher.fetch = Mock(side_effect=RemoteLookupError("NOTOK", status=200))
        engine = BatchCall(backend=backend, abi_storage=AbiStorage(fetcher, delay_time=0))

        with pytest.raises(RemoteLookupError):
            await engine.execute([{"addresses": [WETH], "read_methods": ["decimals"]}])

        assert backend.executions == 0

    @pytest.mark.asyncio
    async def test_failed_call_is_none(self, engine, backend):
        backend.failing.add("totalSupply")

        result = await engine.execute(
            [{"addresses": [DAI], "read_methods": ["totalSupply", "decimals"]}]
        )

        assert result[0]["totalSupply"] == [{"value": None}]
        assert result[0]["decimals"] == [{"value": f"decimals@{HEAD_BLOCK}"}]

    @pytest.mark.asyncio
    async def test_batch_failure_raises(self, engine, backend):
        backend.fail_batch = True

        with pytest.raises(BatchSubmissionError, match="connection refused"):
            await engine.execute([{"addresses": [DAI], "read_methods": ["decimals"]}])

    @pytest.mark.asyncio
    async def test_clear_memory_after_execution(self, backend, abi_storage):
        engine = BatchCall(
            backend=backend, abi_storage=abi_storage, clear_memory_after_execution=True
        )

        await engine.execute([{"addresses": [DAI], "read_methods": ["decimals"]}])

        assert abi_storage.stats() == {"addresses": 0, "abis": 0}

    @pytest.mark.asyncio
    async def test_cache_kept_between_executions(self, engine, abi_storage):
        await engine.execute([{"addresses": [DAI], "read_methods": ["decimals"]}])

        assert abi_storage.get(DAI) is not None

    @pytest.mark.asyncio
    async def test_enable_logging(self, backend, abi_storage, caplog):
        engine = BatchCall(backend=backend, abi_storage=abi_storage, enable_logging=True)

        with caplog.at_level(logging.INFO, logger="src.batchers.batch_call"):
            await engine.execute(
                [{"addresses": [DAI, USDC], "read_methods": ["decimals"]}], block_height=2
            )

        assert "[BatchCall] methods: 4, execution time:" in caplog.text
        assert "failed calls" not in caplog.text

    @pytest.mark.asyncio
    async def test_enable_logging_reports_failures(self, backend, abi_storage, caplog):
        backend.failing.add("decimals")
        engine = BatchCall(backend=backend, abi_storage=abi_storage, enable_logging=True)

        with caplog.at_level(logging.INFO, logger="src.batchers"):
            await engine.execute([{"addresses": [DAI], "read_methods": ["decimals"]}])

        assert "[BatchCall] failed calls: {'reverted': 1}" in caplog.text

    @pytest.mark.asyncio
    async def test_invalid_options(self, engine, backend):
        with pytest.raises(ValidationError):
            await engine.execute([{"addresses": [DAI]}], block_height=0)
        with pytest.raises(ValidationError):
            await engine.execute([{"addresses": [DAI], "contracts": []}])
        with pytest.raises(ValidationError):
            await engine.execute([{"addresses": [DAI], "readMethods": ["decimals"]}])

        assert backend.executions == 0

    @pytest.mark.asyncio
    async def test_address_string_is_not_iterated(self, backend):
        fetcher = Mock()
        fetcher.has_credentials = True
        engine = BatchCall(backend=backend, abi_storage=AbiStorage(fetcher, delay_time=0))

        with pytest.raises(ValidationError):
            await engine.execute([{"addresses": DAI, "read_methods": ["decimals"]}])

        fetcher.fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_mixed_case_address_across_groups(self, engine, backend):
        result = await engine.execute(
            [
                {"addresses": [DAI], "namespace": "a", "read_methods": ["decimals"]},
                {
                    "addresses": [DAI.lower()],
                    "namespace": "b",
                    "read_methods": ["decimals", "totalSupply"],
                },
            ]
        )

        assert result == [
            {
                "address": DAI,
                "namespace": "a",
                "decimals": [{"value": f"decimals@{HEAD_BLOCK}"}],
                "totalSupply": [{"value": f"totalSupply@{HEAD_BLOCK}"}],
            }
        ]
        assert [call.method for call in backend.calls].count("decimals") == 1

    @pytest.mark.asyncio
    async def test_empty_request(self, engine, backend):
        assert await engine.execute([]) == []
        assert backend.executions == 0


class TestBatchCallHelper:
    """Test cases for the batch_call convenience function."""

    @pytest.mark.asyncio
    async def test_batch_call_through_web3(self):
        async def block_number():
            return 1000

        web3 = Mock()
        type(web3.eth).block_number = property(lambda self: block_number())
        web3.provider.make_batch_request = AsyncMock(
            return_value=[{"jsonrpc": "2.0", "id": 0, "result": to_hex(encode(["uint8"], [18]))}]
        )

        result = await batch_call(
            web3,
            [{"addresses": [DAI], "abi": ERC20_ABI, "read_methods": ["decimals"]}],
            abi_storage=AbiStorage(delay_time=0),
            simplify_response=True,
        )

        assert result == [{"address": DAI, "namespace": "default", "decimals": 18}]
        requests = web3.provider.make_batch_request.await_args.args[0]
        assert requests == [("eth_call", [{"to": DAI, "data": "0x313ce567"}, hex(1000)])]
