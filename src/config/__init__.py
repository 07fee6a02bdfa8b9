"""
Configuration management for batchcall.

This module provides centralized configuration management for the batching
engine. Use get_config() to access all configuration settings.

Example:
    from src.config import get_config

    config = get_config()

    # Access chain settings
    ethereum_rpc = config.chains.get_rpc_url("ethereum")

    # Access Etherscan settings for remote ABI lookups
    etherscan = config.get_etherscan_config("ethereum")
"""

from .base import BaseConfig, ConfigError
from .chains import ChainConfig
from .etherscan import EtherscanConfig
from .manager import ConfigManager, get_config, reload_config

__all__ = [
    "BaseConfig",
    "ConfigError",
    "ChainConfig",
    "EtherscanConfig",
    "ConfigManager",
    "get_config",
    "reload_config",
]
