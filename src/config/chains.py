"""
Chain-specific configuration for batchcall.
"""

from dataclasses import dataclass
from typing import Dict

from .base import BaseConfig


@dataclass
class ChainConfig(BaseConfig):
    """Chain-specific configuration for different blockchains."""

    # Default chain settings
    DEFAULT_CHAIN: str = BaseConfig.get_env("DEFAULT_CHAIN", "ethereum")

    # Chain-specific RPC URLs
    ETHEREUM_RPC_URL: str = BaseConfig.get_env(
        "ETHEREUM_RPC_URL", "https://eth.llamarpc.com"
    )
    BASE_RPC_URL: str = BaseConfig.get_env("BASE_RPC_URL", "https://mainnet.base.org")
    ARBITRUM_RPC_URL: str = BaseConfig.get_env(
        "ARBITRUM_RPC_URL", "https://arb1.arbitrum.io/rpc"
    )

    @property
    def supported_chains(self) -> Dict[str, Dict]:
        """Get configuration for all supported chains."""
        return {
            "ethereum": {
                "rpc_url": self.ETHEREUM_RPC_URL,
                "explorer_api_url": "https://api.etherscan.io/api",
            },
            "base": {
                "rpc_url": self.BASE_RPC_URL,
                "explorer_api_url": "https://api.basescan.org/api",
            },
            "arbitrum": {
                "rpc_url": self.ARBITRUM_RPC_URL,
                "explorer_api_url": "https://api.arbiscan.io/api",
            },
        }

    def get_chain_config(self, chain_name: str) -> Dict:
        """Get configuration for a specific chain."""
        if chain_name not in self.supported_chains:
            raise ValueError(f"Unsupported chain: {chain_name}")
        return self.supported_chains[chain_name]

    def get_rpc_url(self, chain_name: str) -> str:
        """Get RPC URL for a specific chain."""
        return self.get_chain_config(chain_name)["rpc_url"]

    def get_explorer_api_url(self, chain_name: str) -> str:
        """Get the Etherscan-style explorer API URL for a specific chain."""
        return self.get_chain_config(chain_name)["explorer_api_url"]
