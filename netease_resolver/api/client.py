"""
NetEase Cloud Music API client.

Handles session management and weapi-signed requests.
"""

import asyncio
import logging
from typing import Any, Mapping, Optional

import aiohttp

from netease_resolver.config import ApiConfig
from netease_resolver.errors import ApiError, DecodeError, EmptyResult, NetworkError

from .crypto import weapi

logger = logging.getLogger(__name__)

REFERER = "https://music.163.com/"
SUCCESS_CODE = 200


def unwrap_payload(
    response: dict[str, Any],
    key: str,
    expected_type: type,
    empty_error: type[EmptyResult] = EmptyResult,
) -> Any:
    """
    Extract a payload entry from a decoded response.

    Args:
        response: Decoded JSON object
        key: Payload field name
        expected_type: Required Python type of the field (list, dict, ...)
        empty_error: Error raised when the field is present but empty

    Returns:
        The payload value

    Raises:
        DecodeError: Field missing or of the wrong type
        EmptyResult: Field present but empty
    """
    if key not in response:
        raise DecodeError(f"Response has no '{key}' field")

    value = response[key]
    if not isinstance(value, expected_type):
        raise DecodeError(
            f"Field '{key}' should be {expected_type.__name__}, got {type(value).__name__}"
        )
    if not value:
        raise empty_error(f"Response field '{key}' is empty")
    return value


class NeteaseAPIClient:
    """Anonymous weapi client with request signing."""

    def __init__(
        self,
        config: Optional[ApiConfig] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """
        Initialize API client.

        Args:
            config: API configuration (defaults when omitted)
            session: Externally owned session; not closed by this client
        """
        self.config = config or ApiConfig()
        self._session = session
        self._owns_session = False

    async def __aenter__(self) -> "NeteaseAPIClient":
        """Async context manager entry."""
        if self._session is None:
            self._session = self._create_session()
            self._owns_session = True
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type],
        exc_val: Optional[BaseException],
        exc_tb: Optional[Any],
    ) -> None:
        """Async context manager exit."""
        await self.close()

    async def close(self) -> None:
        """Close the session if this client created it."""
        if self._session and self._owns_session:
            await self._session.close()
            self._session = None
            self._owns_session = False

    def _create_session(self) -> aiohttp.ClientSession:
        headers = {
            "User-Agent": self.config.user_agent,
            "Referer": REFERER,
        }
        timeout = aiohttp.ClientTimeout(total=self.config.timeout)
        return aiohttp.ClientSession(headers=headers, timeout=timeout)

    async def post(self, path: str, params: Mapping[str, str]) -> dict[str, Any]:
        """
        Make a signed POST request.

        Args:
            path: Endpoint path below the weapi base URL
            params: Plaintext request parameters

        Returns:
            Decoded JSON object

        Raises:
            SigningError: Parameters could not be signed
            NetworkError: Transport failure or HTTP error status
            DecodeError: Body is not a JSON object
            ApiError: Envelope code is not 200
        """
        signed = weapi(params)
        url = f"{self.config.base_url}{path}"

        session = self._session
        close_session = False
        if session is None:
            session = self._create_session()
            close_session = True

        try:
            async with session.post(url, params=signed.to_form()) as resp:
                if resp.status != 200:
                    raise NetworkError(f"API request to {path} failed: HTTP {resp.status}", resp.status)
                try:
                    data = await resp.json(content_type=None)
                except ValueError as e:
                    raise DecodeError(f"Invalid JSON from {path}: {e}") from e
        except asyncio.TimeoutError as e:
            raise NetworkError(f"API request to {path} timed out") from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"API request to {path} failed: {e}") from e
        finally:
            if close_session:
                await session.close()

        if not isinstance(data, dict):
            raise DecodeError(f"Expected JSON object from {path}, got {type(data).__name__}")

        code = data.get("code")
        if code is not None and code != SUCCESS_CODE:
            raise ApiError(f"API request to {path} returned code {code}", code)

        logger.debug(f"API request to {path} succeeded")
        return data
