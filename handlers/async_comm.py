"""Asynchronous HTTP utilities for provider calls.

Wraps an aiohttp session with content-type based decoding and maps transport problems onto a small
exception hierarchy. Callers can tell timeouts, error statuses and undecodable bodies apart without
depending on aiohttp types.
"""

from __future__ import annotations

import json
from json import JSONDecodeError
from typing import TYPE_CHECKING, Any, Final, Literal, Self

import aiohttp
from aiohttp.client import ClientSession

from utils.logger_utils import LoggerUtils

if TYPE_CHECKING:
    import logging
    from collections.abc import Callable

    from aiohttp.client import ClientResponse


__all__: list[str] = [
    "AsyncCommError",
    "AsyncCommInvalidContentTypeError",
    "AsyncCommStatusError",
    "AsyncCommTimeoutError",
    "AsyncHttp",
]

logger: logging.Logger = LoggerUtils.get_logger(__name__)

HTTPMethod = Literal["GET", "POST"]

CONNECT_TIMEOUT: Final[float] = 1.0


class AsyncHttp:
    """Asynchronous HTTP client shared by the HTTP-based providers.

    The session is created lazily on the first request so the client can be constructed outside a
    running event loop. Responses are decoded by content type; JSON bodies are parsed.
    """

    def __init__(self, *, headers: dict[str, str] | None = None) -> None:
        logger.debug("%s initializing", self.__class__.__name__)
        self.__session: ClientSession | None = None
        self.headers: dict[str, str] = dict(headers or {})
        self.content_handlers: dict[str, Callable[[bytes], Any]] = {}

        self.add_handler("text/plain", lambda x: x.decode("utf-8"))
        self.add_handler("application/json", lambda x: json.loads(x.decode("utf-8")))

    async def __aenter__(self) -> Self:
        self.initialize_session()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        _ = exc_type, exc_val, exc_tb
        await self.close()

    def initialize_session(self) -> None:
        if self.__session is None or self.__session.closed:
            self.__session = ClientSession(headers=self.headers)
            logger.debug("%s session initialized", self.__class__.__name__)

    @property
    def session(self) -> ClientSession:
        """Current aiohttp session, created on demand."""
        self.initialize_session()
        if self.__session is None:
            msg = "Session could not be initialized"
            raise RuntimeError(msg)
        return self.__session

    @property
    def is_open(self) -> bool:
        return self.__session is not None and not self.__session.closed

    async def close(self) -> None:
        """Close the aiohttp session if it is open."""
        if self.__session and not self.__session.closed:
            await self.__session.close()
            logger.debug("%s session closed", self.__class__.__name__)
        self.__session = None

    async def post(
        self,
        *,
        url: str,
        data: Any | None = None,
        params: dict[str, str] | None = None,
        total_timeout: float = 10.0,
    ) -> Any:
        """Perform a POST request with a JSON body.

        Args:
            url (str): Request URL.
            data (Any | None): JSON-serializable request body.
            params (dict[str, str] | None): Query parameters.
            total_timeout (float): Total timeout in seconds. 0 or less disables the timeout.

        Returns:
            Any: Decoded response body, None when the body is empty.
        """
        return await self._request("POST", url=url, params=params, json=data, total_timeout=total_timeout)

    async def decode_response(self, resp: ClientResponse) -> Any:
        """Decode a response body according to its Content-Type.

        Args:
            resp (ClientResponse): Response with a successful status.

        Returns:
            Any: Parsed body.

        Raises:
            AsyncCommInvalidContentTypeError: If no handler is registered for the content type, or the
                registered handler cannot decode the body.
        """
        content_type: str = resp.headers.get("Content-Type", "").split(";")[0].strip()
        raw: bytes = await resp.read()
        if not raw:
            logger.debug("Received empty response")
            return None

        handler: Callable[[bytes], Any] | None = self.content_handlers.get(content_type)
        if handler is None:
            msg: str = f"Unknown Content-Type '{content_type}'"
            raise AsyncCommInvalidContentTypeError(msg)
        try:
            return handler(raw)
        except (UnicodeDecodeError, JSONDecodeError) as err:
            msg = f"Body could not be decoded as '{content_type}'"
            raise AsyncCommInvalidContentTypeError(msg) from err

    def add_handler(self, content_type: str, handler: Callable[[bytes], Any]) -> None:
        """Register a decoder for a content type, replacing any existing one."""
        if content_type in self.content_handlers:
            logger.debug("Handler for content type '%s' already exists, replacing it", content_type)
        self.content_handlers[content_type] = handler

    @staticmethod
    def _timeout(total_timeout: float) -> aiohttp.ClientTimeout:
        if total_timeout <= 0:
            return aiohttp.ClientTimeout(total=None)
        if total_timeout < CONNECT_TIMEOUT:
            return aiohttp.ClientTimeout(total=total_timeout)
        return aiohttp.ClientTimeout(connect=CONNECT_TIMEOUT, total=total_timeout)

    async def _request(self, method: HTTPMethod, *, url: str, total_timeout: float, **kwargs: Any) -> Any:
        """Perform a request and decode its body.

        Raises:
            AsyncCommTimeoutError: If the request did not complete within ``total_timeout``.
            AsyncCommStatusError: If the server answered with a 4xx/5xx status.
            AsyncCommError: If the connection failed.
            AsyncCommInvalidContentTypeError: If the body could not be decoded.
        """
        logger.debug("[%s] url=%s timeout=%s", method, url, total_timeout)
        try:
            async with self.session.request(
                method=method, url=url, timeout=self._timeout(total_timeout), **kwargs
            ) as resp:
                resp.raise_for_status()
                return await self.decode_response(resp)

        except TimeoutError as err:
            msg = "Timeout due to a lack of response from the server."
            raise AsyncCommTimeoutError(msg) from err
        except aiohttp.ClientResponseError as err:
            msg = "Error response from the server."
            raise AsyncCommStatusError(msg, status=err.status) from err
        except (aiohttp.ClientConnectionError, ConnectionResetError) as err:
            msg = "The server could not be reached."
            raise AsyncCommError(msg) from err


class AsyncCommError(Exception):
    """Base class for asynchronous communication errors."""

    def __init__(self, msg: str | BaseException, *, status: int | None = None) -> None:
        self.status: int | None = status
        self.msg: str = str(msg) if status is None else f"{msg}: status='{status}'"
        super().__init__(self.msg)


class AsyncCommTimeoutError(AsyncCommError):
    """The request did not complete within its timeout."""


class AsyncCommStatusError(AsyncCommError):
    """The server answered with an error status. ``status`` holds the HTTP code."""

    @property
    def is_client_error(self) -> bool:
        return self.status is not None and 400 <= self.status < 500


class AsyncCommInvalidContentTypeError(AsyncCommError):
    """The response body had an unexpected content type or could not be decoded."""
