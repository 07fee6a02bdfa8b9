"""
Etherscan configuration for remote ABI lookups.

Not a :class:`BaseConfig`: building one neither configures logging nor
checks ``ENVIRONMENT``.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Optional

from .base import BaseConfig, ConfigError

DEFAULT_ETHERSCAN_API_URL = "https://api.etherscan.io/api"
DEFAULT_DELAY_TIME_MS = 300


@dataclass
class EtherscanConfig:
    """
    Etherscan API settings.

    ``delay_time`` is the pause, in milliseconds, enforced after every
    remote ABI fetch to stay under the explorer's rate limit.
    """

    api_key: Optional[str] = field(
        default_factory=lambda: BaseConfig.get_env("ETHERSCAN_API_KEY") or None
    )
    api_url: str = field(
        default_factory=lambda: BaseConfig.get_env(
            "ETHERSCAN_API_URL", DEFAULT_ETHERSCAN_API_URL
        )
    )
    delay_time: int = field(
        default_factory=lambda: BaseConfig.get_env_int(
            "ETHERSCAN_DELAY_TIME", DEFAULT_DELAY_TIME_MS
        )
    )
    timeout: float = field(
        default_factory=lambda: BaseConfig.get_env_float("ETHERSCAN_TIMEOUT", 10.0)
    )

    def __post_init__(self):
        if self.delay_time < 0:
            raise ConfigError(f"Etherscan delay time must be >= 0, got: {self.delay_time}")
        if self.timeout <= 0:
            raise ConfigError(f"Etherscan timeout must be > 0, got: {self.timeout}")

    @classmethod
    def from_dict(cls, options: Optional[Dict[str, Any]]) -> "EtherscanConfig":
        """
        Build a config from engine options, e.g. ``{"api_key": ..., "delay_time": 300}``.

        Keys that are not given fall back to the environment.
        """
        options = dict(options or {})
        unknown = set(options) - {"api_key", "api_url", "delay_time", "timeout"}
        if unknown:
            raise ConfigError(f"Unknown etherscan options: {sorted(unknown)}")
        return cls(**options)

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)
