from typing import Any, Dict, Optional

import requests
from eth_typing import ChecksumAddress

from synthdeploy.constants import NOT_VERIFIED

REQUEST_TIMEOUT = 30  # seconds


class ExplorerError(Exception):
    """Raised when the explorer API cannot be reached or answers with an unexpected payload."""


class EtherscanClient:
    """Minimal client for the contract-verification endpoints of an etherscan-compatible API."""

    def __init__(
        self,
        api_url: str,
        api_key: Optional[str],
        session: Optional[requests.Session] = None,
        timeout: float = REQUEST_TIMEOUT,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.session = session or requests.Session()
        self.timeout = timeout

    def _parse(self, response: requests.Response) -> Dict[str, Any]:
        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            raise ExplorerError(f"Request to {self.api_url} failed: {e}") from e
        try:
            data = response.json()
        except ValueError:
            raise ExplorerError(f"Invalid response from {self.api_url}: {response.text[:200]}")
        if not isinstance(data, dict) or "result" not in data:
            raise ExplorerError(f"Unexpected response from {self.api_url}: {data}")
        return data

    def _get(self, **params) -> Dict[str, Any]:
        params["apikey"] = self.api_key
        try:
            response = self.session.get(self.api_url, params=params, timeout=self.timeout)
        except requests.RequestException as e:
            raise ExplorerError(f"Request to {self.api_url} failed: {e}") from e
        return self._parse(response)

    def _post(self, **data) -> Dict[str, Any]:
        data["apikey"] = self.api_key
        try:
            # form-encoded, as required by the verification endpoint
            response = self.session.post(self.api_url, data=data, timeout=self.timeout)
        except requests.RequestException as e:
            raise ExplorerError(f"Request to {self.api_url} failed: {e}") from e
        return self._parse(response)

    def get_abi(self, address: ChecksumAddress) -> Dict[str, Any]:
        return self._get(module="contract", action="getabi", address=address)

    def is_verified(self, address: ChecksumAddress) -> bool:
        """
        True if the explorer has verified source for the address,
        False if it reports the source as not verified.
        """
        data = self.get_abi(address)
        if data.get("status") == "1":
            return True
        if data["result"] == NOT_VERIFIED:
            return False
        raise ExplorerError(f"Could not get verification status of {address}: {data['result']}")

    def get_creation_input(self, address: ChecksumAddress) -> str:
        """Returns the input data of the transaction that created the contract at address."""
        data = self._get(
            module="account",
            action="txlist",
            address=address,
            page=1,
            sort="asc",
        )
        if data.get("status") == "1" and data["result"]:
            # If there are transactions, the first one will be the contract creation transaction
            creation_input = data["result"][0].get("input")
            if creation_input:
                return creation_input
        raise ExplorerError(f"Could not find contract creation transaction for {address}")

    def submit_verification(self, **payload) -> Dict[str, Any]:
        return self._post(module="contract", action="verifysourcecode", **payload)

    def check_verification_status(self, guid: str) -> str:
        data = self._get(module="contract", action="checkverifystatus", guid=guid)
        return data["result"]
