"""HTTP client for the Reattend service."""

from typing import Any, Dict, Optional

import httpx
from loguru import logger

from .config import Config
from .errors import ApiError, NetworkError, NotConfiguredError


class ReattendClient:
    """
    Thin async client for the tray endpoints.

    Every call opens and closes its own httpx.AsyncClient, so nothing is held
    between scheduler ticks. Transport failures raise NetworkError, non-2xx
    responses raise ApiError.
    """

    def __init__(
        self,
        api_url: str,
        api_token: str,
        timeout: float = 10.0,
        ocr_timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_url = api_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout
        self.ocr_timeout = ocr_timeout
        self._transport = transport

    @classmethod
    def from_config(
        cls,
        config: Config,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> "ReattendClient":
        return cls(
            api_url=config.api_url,
            api_token=config.api_token,
            timeout=config.request_timeout,
            ocr_timeout=config.ocr_timeout,
            transport=transport,
        )

    @property
    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_token}"}

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None
    ) -> httpx.Response:
        if not self.api_token:
            raise NotConfiguredError()

        url = f"{self.api_url}{path}"
        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=timeout or self.timeout
            ) as client:
                response = await client.request(
                    method,
                    url,
                    json=json,
                    params=params,
                    headers=self.headers
                )
        except httpx.HTTPError as e:
            raise NetworkError(e) from e

        if not response.is_success:
            raise ApiError(response.status_code, response.text)

        logger.debug(f"{method} {path} -> {response.status_code}")
        return response

    def _json(self, response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise ApiError(response.status_code, f"invalid JSON: {e}") from e

    async def capture(
        self,
        text: str,
        source: str,
        metadata: Optional[Dict[str, Any]] = None
    ) -> str:
        """Submit text as a new memory. Returns the memory id ("" if none given)."""
        body: Dict[str, Any] = {"text": text, "source": source}
        if metadata is not None:
            body["metadata"] = metadata

        response = await self._request("POST", "/api/tray/capture", json=body)
        data = self._json(response)
        memory_id = data.get("id") if isinstance(data, dict) else None
        return memory_id if isinstance(memory_id, str) else ""

    async def search(self, query: str, limit: int = 5) -> Dict[str, Any]:
        response = await self._request(
            "GET",
            "/api/tray/search",
            params={"q": query, "limit": str(limit)}
        )
        return self._json(response)

    async def ask(self, question: str) -> str:
        """Ask a question about stored memories; the answer is plain text."""
        response = await self._request(
            "POST",
            "/api/tray/ask",
            json={"question": question}
        )
        return response.text

    async def analyze(self, screen_text: str, app_name: str) -> Dict[str, Any]:
        """Ask for memories related to what is on screen."""
        response = await self._request(
            "POST",
            "/api/tray/analyze",
            json={"screen_text": screen_text, "app_name": app_name}
        )
        return self._json(response)

    async def ocr(self, image_b64: str, app_name: str) -> Dict[str, Any]:
        """Server-side OCR of a base64 JPEG screenshot."""
        response = await self._request(
            "POST",
            "/api/tray/ocr",
            json={"image": image_b64, "app_name": app_name},
            timeout=self.ocr_timeout
        )
        data = self._json(response)
        if not isinstance(data, dict):
            raise ApiError(response.status_code, "unexpected OCR response")
        data.setdefault("appName", app_name)
        return data
