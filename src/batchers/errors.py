"""
Error handling utilities for batch calling operations.

This module provides specialized exception classes and error handling
utilities for the batching engine.
"""

from collections import Counter
from typing import Any, Optional
import logging

logger = logging.getLogger(__name__)


class BatchError(Exception):
    """Base exception for batch operations."""
    pass


class NetworkError(BatchError):
    """Raised when network-related errors occur."""
    pass


class ContractError(BatchError):
    """Raised when contract-related errors occur."""
    pass


class ValidationError(BatchError):
    """Raised when input validation fails."""
    pass


class ConfigurationError(BatchError):
    """
    Raised when the engine cannot do its job with the configuration it was given.

    Covers a missing RPC endpoint at construction and an address whose ABI is
    neither cached, supplied, nor fetchable because no explorer key is set.
    """
    pass


class RemoteLookupError(BatchError):
    """Raised when the remote ABI service fails or answers with garbage."""

    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.body = body


class MissingCredentialsError(ConfigurationError, RemoteLookupError):
    """Raised by the remote ABI fetcher when no API key is configured."""

    def __init__(self, message: str):
        RemoteLookupError.__init__(self, message)


class BatchSubmissionError(BatchError):
    """Raised when the batched network round-trip itself fails."""
    pass


class ErrorHandler:
    """
    Classifies and logs per-call failures of a batch.

    Failures are counted by category so the engine can report them once the
    batch is done; a failing call never raises.
    """

    # JSON-RPC error codes returned for individual eth_call requests
    RPC_ERROR_CODES = {
        3: "reverted",
        -32005: "rate_limit",
        -32602: "invalid_params",
    }

    # Node messages for state that is no longer (or not yet) available
    MISSING_STATE_MESSAGES = ("header not found", "missing trie node", "unknown block")

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)
        self.counts: Counter = Counter()

    @staticmethod
    def describe(error: Any) -> str:
        """Human readable message of an exception or JSON-RPC error object."""
        if isinstance(error, dict):
            return str(error.get("message") or error)
        return str(error)

    def classify_error(self, error: Any) -> str:
        """
        Classify a per-call failure.

        Args:
            error: Exception raised while encoding or decoding a call, or the
                JSON-RPC ``error`` object returned for it

        Returns:
            One of ``reverted``, ``rate_limit``, ``invalid_params``,
            ``block_unavailable``, ``encoding`` or ``unknown``
        """
        if isinstance(error, ContractError):
            return "encoding"

        message = self.describe(error).lower()
        if any(text in message for text in self.MISSING_STATE_MESSAGES):
            return "block_unavailable"

        if isinstance(error, dict) and error.get("code") in self.RPC_ERROR_CODES:
            return self.RPC_ERROR_CODES[error["code"]]

        if "revert" in message:
            return "reverted"
        if "rate limit" in message or "too many requests" in message:
            return "rate_limit"
        return "unknown"

    def log_call_failure(
        self, address: str, method: str, block_number: Optional[int], error: Any
    ) -> str:
        """
        Log one failed call and count it.

        Returns:
            The failure category
        """
        category = self.classify_error(error)
        self.counts[category] += 1
        self.logger.warning(
            f"[BatchCall] {address}: method call failed: {method}",
            extra={
                "error_category": category,
                "error_message": self.describe(error),
                "block_number": block_number,
            },
        )
        return category
