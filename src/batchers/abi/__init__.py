"""
ABI cache and remote ABI lookup.
"""

from .etherscan import EtherscanAbiFetcher
from .storage import AbiStorage, content_hash, find_function, is_readable_field

__all__ = [
    "AbiStorage",
    "EtherscanAbiFetcher",
    "content_hash",
    "find_function",
    "is_readable_field",
]
