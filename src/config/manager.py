"""
Configuration manager for batchcall.

This module provides a centralized way to access all configuration settings
across the application. It combines all configuration classes into a single
easy-to-use interface.
"""

import logging
from typing import Dict, Any
from .base import BaseConfig, ConfigError
from .chains import ChainConfig
from .etherscan import EtherscanConfig

logger = logging.getLogger(__name__)


class ConfigManager:
    """
    Centralized configuration manager that combines all configuration classes.

    This class provides easy access to all configuration settings and ensures
    that configurations are properly initialized and validated.
    """

    def __init__(self, environment: str = None):
        """
        Initialize the configuration manager.

        Args:
            environment: Override the environment (local, dev, staging, production)
        """
        self._environment = environment
        self._base_config = None
        self._chain_config = None
        self._etherscan_config = None
        self._initialize_configs()

    def _initialize_configs(self):
        """Initialize all configuration objects."""
        try:
            # Initialize base configuration first
            self._base_config = BaseConfig()
            if self._environment:
                self._base_config.ENVIRONMENT = self._environment

            self._chain_config = ChainConfig()
            self._etherscan_config = EtherscanConfig()

            logger.info(f"Configuration initialized for environment: {self.environment}")

        except Exception as e:
            logger.error(f"Failed to initialize configuration: {e}")
            raise ConfigError(f"Configuration initialization failed: {e}")

    @property
    def environment(self) -> str:
        """Get current environment."""
        return self._base_config.ENVIRONMENT

    @property
    def base(self) -> BaseConfig:
        """Get base configuration."""
        return self._base_config

    @property
    def chains(self) -> ChainConfig:
        """Get chain configuration."""
        return self._chain_config

    @property
    def etherscan(self) -> EtherscanConfig:
        """Get Etherscan configuration."""
        return self._etherscan_config

    def get_etherscan_config(self, chain_name: str) -> EtherscanConfig:
        """
        Get Etherscan settings pointed at the explorer of a specific chain.

        An explicit ``ETHERSCAN_API_URL`` wins over the chain's default explorer.

        Args:
            chain_name: Name of the blockchain (ethereum, base, arbitrum)

        Returns:
            EtherscanConfig for that chain
        """
        api_url = BaseConfig.get_env("ETHERSCAN_API_URL") or self.chains.get_explorer_api_url(
            chain_name
        )
        return EtherscanConfig(
            api_key=self.etherscan.api_key,
            api_url=api_url,
            delay_time=self.etherscan.delay_time,
            timeout=self.etherscan.timeout,
        )

    def validate_configuration(self) -> bool:
        """
        Validate all configuration settings.

        Returns:
            True if all configurations are valid

        Raises:
            ConfigError: If any configuration is invalid
        """
        try:
            supported_chains = self.chains.supported_chains
            if not supported_chains:
                raise ConfigError("No chains configured")

            if self.chains.DEFAULT_CHAIN not in supported_chains:
                raise ConfigError(f"Unsupported default chain: {self.chains.DEFAULT_CHAIN}")

            if not self.etherscan.api_key:
                logger.warning("ETHERSCAN_API_KEY not set, ABIs must be supplied explicitly")

            logger.info("Configuration validation successful")
            return True

        except ConfigError as e:
            logger.error(f"Configuration validation failed: {e}")
            raise

    def to_dict(self) -> Dict[str, Any]:
        """Convert all configurations to dictionary format."""
        etherscan = self.etherscan.to_dict() if self.etherscan else {}
        if etherscan.get("api_key"):
            etherscan["api_key"] = "***"
        return {
            "environment": self.environment,
            "base": self.base.to_dict() if self.base else {},
            "chains": self.chains.to_dict() if self.chains else {},
            "etherscan": etherscan,
        }

    def __repr__(self) -> str:
        """String representation of the configuration manager."""
        return f"ConfigManager(environment={self.environment})"


# Global configuration manager instance
_config_manager = None


def get_config(environment: str = None, force_reload: bool = False) -> ConfigManager:
    """
    Get the global configuration manager instance.

    Args:
        environment: Override environment
        force_reload: Force reload of configuration

    Returns:
        ConfigManager instance
    """
    global _config_manager

    if _config_manager is None or force_reload:
        _config_manager = ConfigManager(environment=environment)
        _config_manager.validate_configuration()

    return _config_manager


def reload_config(environment: str = None) -> ConfigManager:
    """
    Reload the global configuration manager.

    Args:
        environment: Override environment

    Returns:
        New ConfigManager instance
    """
    return get_config(environment=environment, force_reload=True)
