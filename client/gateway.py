from __future__ import annotations
import asyncio
import json
from typing import Any, Dict, Optional

import aiohttp

from shared.errors import InvalidTokenError, NetworkError
from shared.log import get_logger
from shared.utils import is_well_formed_token, normalize_token

logger = get_logger(__name__)


class TokenGateway:
    """
    The two HTTP calls the client makes against the chat backend.

    Stateless from the caller's point of view: each call either returns a
    result or raises NetworkError. The aiohttp session is only kept for
    connection reuse and is created on first use.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
            self._owns_session = True
        return self._session

    async def _request_json(self, method: str, path: str, payload: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        url = self._url(path)
        try:
            async with self._get_session().request(method, url, json=payload) as response:
                # Status is not checked: the backend answers errors with JSON too
                raw = await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(f"{method} {url} failed: {e!r}") from e
        try:
            data = json.loads(raw)
        except ValueError as e:
            raise NetworkError(f"{method} {url} returned non-JSON body") from e
        if not isinstance(data, dict):
            raise NetworkError(f"{method} {url} returned {type(data).__name__}, expected object")
        return data

    async def generate_token(self) -> str:
        """Ask the backend for a fresh room token."""
        data = await self._request_json("GET", "/api/generate-token")
        token = data.get("token")
        if not isinstance(token, str) or not token:
            raise NetworkError("generate-token response has no token")
        token = normalize_token(token)
        if not is_well_formed_token(token):
            logger.warning("Backend issued unusual token %r", token)
        logger.info("Generated room token", extra={"room": token})
        return token

    async def validate_token(self, candidate: str) -> bool:
        """
        Ask whether the backend currently knows ``candidate`` as an open room.
        The candidate is upper-cased before it is sent.
        """
        token = normalize_token(candidate)
        data = await self._request_json("POST", "/api/validate-token", {"token": token})
        valid = data.get("valid")
        if not isinstance(valid, bool):
            raise NetworkError("validate-token response has no boolean 'valid'")
        logger.debug("Token validation answered %s", valid, extra={"room": token})
        return valid

    async def require_valid(self, candidate: str) -> str:
        """Return the normalized token, or raise InvalidTokenError."""
        token = normalize_token(candidate)
        if not await self.validate_token(token):
            raise InvalidTokenError(token)
        return token

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "TokenGateway":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
