"""
Etherscan ABI fetcher.

Retrieves verified contract ABIs from an Etherscan-style explorer API.
Rate limiting is not handled here: callers that fetch repeatedly must
space their requests (see :class:`src.batchers.abi.storage.AbiStorage`).
"""

import json
import logging
from typing import Any, Dict, List, Optional

import requests

from ..errors import MissingCredentialsError, RemoteLookupError
from ...config.etherscan import EtherscanConfig

logger = logging.getLogger(__name__)


class EtherscanAbiFetcher:
    """Fetch contract ABIs from Etherscan (``module=contract&action=getabi``)."""

    def __init__(
        self,
        config: Optional[EtherscanConfig] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize fetcher.

        Args:
            config: Etherscan settings (defaults to environment configuration)
            session: HTTP session to reuse (optional)
        """
        self.config = config or EtherscanConfig()
        self.session = session or requests.Session()
        self.session.headers.update({"User-Agent": "batchcall/0.1"})

    @property
    def has_credentials(self) -> bool:
        """Whether an API key is configured."""
        return bool(self.config.api_key)

    def fetch(self, address: str) -> List[Dict[str, Any]]:
        """
        Fetch the ABI of a verified contract.

        Args:
            address: Contract address

        Returns:
            The contract ABI

        Raises:
            MissingCredentialsError: If no API key is configured (no request is made)
            RemoteLookupError: If the explorer is unreachable or answers with an
                error or an undecodable payload
        """
        if not self.has_credentials:
            raise MissingCredentialsError(
                f"Cannot fetch ABI for {address}: no Etherscan API key configured"
            )

        params = {
            "module": "contract",
            "action": "getabi",
            "address": address,
            "apikey": self.config.api_key,
        }

        logger.debug(f"Fetching ABI for {address} from {self.config.api_url}")
        try:
            response = self.session.get(
                self.config.api_url, params=params, timeout=self.config.timeout
            )
        except requests.RequestException as e:
            raise RemoteLookupError(f"ABI lookup for {address} failed: {e}") from e

        body = response.text
        if not response.ok:
            raise RemoteLookupError(
                f"ABI lookup for {address} failed with HTTP {response.status_code}",
                status=response.status_code,
                body=body,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise RemoteLookupError(
                f"ABI lookup for {address} returned invalid JSON",
                status=response.status_code,
                body=body,
            ) from e

        return self._parse_abi(address, payload, response.status_code, body)

    @staticmethod
    def _parse_abi(
        address: str, payload: Any, status: int, body: str
    ) -> List[Dict[str, Any]]:
        """Decode the JSON encoded ABI string found under ``result``."""
        result = payload.get("result") if isinstance(payload, dict) else None
        if isinstance(result, str):
            try:
                result = json.loads(result)
            except ValueError:
                # Etherscan reports errors as a plain string in ``result``
                raise RemoteLookupError(
                    f"ABI lookup for {address} failed: {payload.get('result')}",
                    status=status,
                    body=body,
                )

        if not isinstance(result, list):
            raise RemoteLookupError(
                f"ABI lookup for {address} returned no ABI",
                status=status,
                body=body,
            )

        return result
