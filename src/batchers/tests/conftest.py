"""Test configuration for batchers."""
import copy

import pytest

from src.batchers.abi.storage import AbiStorage
from src.batchers.tests._fakes import DAI, ERC20_ABI, USDC, FakeBackend


@pytest.fixture
def erc20_abi():
    """A fresh copy of a minimal ERC20 ABI."""
    return copy.deepcopy(ERC20_ABI)


@pytest.fixture
def backend():
    """Fake contract-call collaborator."""
    return FakeBackend()


@pytest.fixture
def abi_storage(erc20_abi):
    """ABI cache pre-loaded with the ERC20 ABI for DAI and USDC."""
    storage = AbiStorage(delay_time=0)
    storage.put(DAI, erc20_abi)
    storage.put(USDC, erc20_abi)
    return storage
