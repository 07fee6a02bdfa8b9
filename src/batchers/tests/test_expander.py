"""Tests for request expansion."""
from types import SimpleNamespace

import pytest

from src.batchers.base import BlockSample, ContractGroup, MethodSpec
from src.batchers.expander import RequestExpander, build_block_samples
from src.batchers.tests._fakes import DAI, ERC20_ABI, HOLDER, USDC, WETH


def head_only():
    return build_block_samples(100)


class TestBuildBlockSamples:
    """Test cases for block sampling."""

    def test_single_sample_is_head(self):
        assert build_block_samples(100) == [BlockSample(block_number=100, position=0)]

    def test_samples_oldest_first(self):
        samples = build_block_samples(100, block_height=3, block_resolution=10)

        assert [s.block_number for s in samples] == [80, 90, 100]
        assert [s.position for s in samples] == [0, 1, 2]

    def test_negative_heights_dropped(self):
        samples = build_block_samples(5, block_height=4, block_resolution=2)

        assert [s.block_number for s in samples] == [1, 3, 5]

    def test_genesis_is_kept(self):
        samples = build_block_samples(4, block_height=3, block_resolution=2)

        assert [s.block_number for s in samples] == [0, 2, 4]


class TestRequestExpander:
    """Test cases for RequestExpander."""

    @pytest.fixture
    def expander(self, abi_storage, backend):
        return RequestExpander(abi_storage, backend)

    def test_one_descriptor_per_sample(self, expander):
        groups = [ContractGroup(addresses=[DAI], read_methods=["totalSupply"])]

        descriptors = expander.expand(groups, build_block_samples(100, 3, 10))

        assert len(descriptors) == 3
        assert {d.call_id for d in descriptors} == {0}
        assert [d.block_number for d in descriptors] == [80, 90, 100]
        assert all(d.method == "totalSupply" and d.input is None for d in descriptors)

    def test_missing_method_skipped(self, expander):
        groups = [ContractGroup(addresses=[DAI], read_methods=["nope", "totalSupply"])]

        descriptors = expander.expand(groups, head_only())

        assert [d.method for d in descriptors] == ["totalSupply"]

    def test_address_without_abi_skipped(self, expander):
        groups = [ContractGroup(addresses=[WETH], read_methods=["totalSupply"])]

        assert expander.expand(groups, head_only()) == []

    def test_input_encoded_only_with_args(self, expander):
        groups = [
            ContractGroup(
                addresses=[DAI],
                read_methods=[{"name": "balanceOf", "args": [HOLDER]}, "totalSupply"],
            )
        ]

        descriptors = expander.expand(groups, head_only())

        assert descriptors[0].input == f"0xbalanceOf:{HOLDER}"
        assert descriptors[0].args == [HOLDER]
        assert descriptors[1].input is None
        assert descriptors[1].args is None

    def test_extra_args_truncated(self, expander):
        groups = [
            ContractGroup(
                addresses=[DAI],
                read_methods=[MethodSpec(name="balanceOf", args=[HOLDER, "extra"])],
            )
        ]

        descriptor = expander.expand(groups, head_only())[0]

        assert descriptor.input == f"0xbalanceOf:{HOLDER}"
        assert descriptor.call_args == [HOLDER]
        assert descriptor.args == [HOLDER, "extra"]

    def test_unencodable_input_is_none(self, expander, backend):
        backend.unencodable.add("balanceOf")
        groups = [
            ContractGroup(addresses=[DAI], read_methods=[{"name": "balanceOf", "args": ["x"]}])
        ]

        descriptors = expander.expand(groups, head_only())

        assert len(descriptors) == 1
        assert descriptors[0].input is None

    def test_constants_read_once_per_address(self, expander):
        groups = [
            ContractGroup(addresses=[DAI], namespace="a", read_methods=["name", "totalSupply"]),
            ContractGroup(
                addresses=[DAI, USDC], namespace="b", read_methods=["name", "totalSupply"]
            ),
        ]

        descriptors = expander.expand(groups, head_only())

        reads = [(d.namespace, d.address, d.method) for d in descriptors]
        assert reads == [
            ("a", DAI, "name"),
            ("a", DAI, "totalSupply"),
            ("b", DAI, "totalSupply"),
            ("b", USDC, "name"),
            ("b", USDC, "totalSupply"),
        ]

    def test_constant_flag_on_method(self, expander):
        groups = [
            ContractGroup(addresses=[DAI], read_methods=["totalSupply"]),
            ContractGroup(
                addresses=[DAI], read_methods=[MethodSpec(name="totalSupply", constant=True)]
            ),
        ]

        descriptors = expander.expand(groups, head_only())

        assert len(descriptors) == 1

    def test_visited_addresses_compare_case_insensitively(self, expander):
        groups = [
            ContractGroup(addresses=[DAI], read_methods=["decimals"]),
            ContractGroup(addresses=[DAI.lower()], read_methods=["decimals"]),
        ]

        assert len(expander.expand(groups, head_only())) == 1

    def test_all_read_methods(self, expander):
        groups = [ContractGroup(addresses=[DAI], all_read_methods=True)]

        descriptors = expander.expand(groups, head_only())

        assert [d.method for d in descriptors] == ["name", "decimals", "totalSupply"]

    def test_all_read_methods_with_explicit_methods(self, expander):
        groups = [
            ContractGroup(
                addresses=[DAI],
                read_methods=["totalSupply", {"name": "balanceOf", "args": [HOLDER]}],
                all_read_methods=True,
            )
        ]

        descriptors = expander.expand(groups, head_only())

        assert [d.method for d in descriptors] == [
            "totalSupply",
            "balanceOf",
            "name",
            "decimals",
        ]

    def test_call_ids_distinguish_reads(self, expander):
        groups = [
            ContractGroup(
                addresses=[DAI, USDC],
                read_methods=[
                    {"name": "balanceOf", "args": [HOLDER]},
                    {"name": "balanceOf", "args": [DAI]},
                ],
            )
        ]

        descriptors = expander.expand(groups, build_block_samples(100, 2, 1))

        assert len(descriptors) == 8
        assert len({d.call_id for d in descriptors}) == 4

    def test_contract_handles(self, abi_storage, backend):
        handle = SimpleNamespace(address=WETH, abi=ERC20_ABI)
        abi_storage.put(WETH, handle.abi)
        expander = RequestExpander(abi_storage, backend)
        groups = [ContractGroup(contracts=[handle], namespace="weth", read_methods=["decimals"])]

        descriptors = expander.expand(groups, head_only())

        assert [(d.address, d.namespace, d.method) for d in descriptors] == [
            (WETH, "weth", "decimals")
        ]
