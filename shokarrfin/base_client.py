"""
Base API Client for the HTTP services (Shoko, Jellyfin)
"""

import logging
from abc import ABC, abstractmethod
from typing import Any

import requests

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    """An external service could not be reached or answered with an error"""


class NotFoundError(ServiceError):
    """The requested entity does not exist on the external service"""


class BaseApiClient(ABC):
    """Base client for JSON REST APIs"""

    api_prefix = ""
    auth_header = "X-Api-Key"

    def __init__(self, url: str, api_key: str, timeout: int = 30):
        self.url = url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.session = requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if api_key:
            self.session.headers[self.auth_header] = api_key

    def _request(
        self,
        method: str,
        endpoint: str,
        params: dict | None = None,
        data: Any = None,
        token: str | None = None,
    ) -> Any:
        """Perform a request and decode the JSON answer

        Raises:
            NotFoundError: on HTTP 404
            ServiceError: on any other transport or HTTP failure
        """
        url = f"{self.url}{self.api_prefix}/{endpoint}"
        headers = {self.auth_header: token} if token else None
        try:
            response = self.session.request(
                method,
                url,
                params=params,
                json=data,
                headers=headers,
                timeout=self.timeout,
            )
            if response.status_code == 404:
                raise NotFoundError(f"{method} {endpoint}: not found")
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise ServiceError(f"{method} {endpoint} failed: {e}") from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise ServiceError(f"{method} {endpoint}: invalid JSON answer") from e

    def _get(self, endpoint: str, params: dict | None = None, token: str | None = None) -> Any:
        """Perform a GET request to the API"""
        return self._request("GET", endpoint, params=params, token=token)

    def _post(
        self,
        endpoint: str,
        data: Any = None,
        params: dict | None = None,
        token: str | None = None,
    ) -> Any:
        """Perform a POST request to the API"""
        return self._request("POST", endpoint, params=params, data=data, token=token)

    def test_connection(self) -> bool:
        """Test the connection to the service"""
        try:
            self._get(self.status_endpoint())
            return True
        except ServiceError as e:
            logger.error(f"Connection test failed: {e}")
            return False

    @abstractmethod
    def status_endpoint(self) -> str:
        """Endpoint used by test_connection - must be implemented by subclasses"""
        pass
