"""
HTTP client for the model API.
"""

import time
from typing import Any, Dict, Optional, TYPE_CHECKING

import httpx

from shared.config import ClientConfig
from shared.errors import DeserializationError, FetchError, ReadBackDeniedError
from shared.logging import get_logger
from ..wire import unmarshal_response

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.metrics import MetricsCollector


READ_BACK_DENIED_CODE = "P2004"
READ_BACK_DENIED_REASON = "RESULT_NOT_READABLE"

# Failures raised while parsing a body or restoring its rich values
DECODE_ERRORS = (ValueError, TypeError, KeyError, IndexError)


class ModelApiClient:
    """Client for model API endpoints implementing the response envelope contract."""

    def __init__(
        self,
        config: ClientConfig,
        http_client: Optional[httpx.AsyncClient] = None,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.config = config
        self.http_client = http_client
        self.metrics = metrics
        self.logger = get_logger("model_cache.api_client")

    def url_for(self, model: str, operation: str) -> str:
        return self.config.url_for(model, operation)

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        body: Optional[str] = None,
        check_read_back: bool = True,
    ) -> Any:
        """
        Send a request and unwrap the response envelope.

        Returns the envelope's ``data``. A read-back denial resolves to None
        when ``check_read_back`` is set and raises `ReadBackDeniedError`
        otherwise; other failures raise `FetchError`. Bodies that cannot be
        decoded raise `DeserializationError`.
        """
        start_time = time.time()
        response = await self._send(method, url, body)
        if self.metrics:
            self.metrics.record_fetch(method, response.status_code, time.time() - start_time)

        text = response.text

        if not response.is_success:
            error = self._error_payload(text)
            if _is_read_back_denied(error):
                return self._read_back_denied(url, response.status_code, error, check_read_back)

            self.logger.error(
                "Model API request failed",
                method=method,
                url=url,
                status_code=response.status_code,
                error=error,
            )
            raise FetchError(response.status_code, error)

        envelope = self._decode(text, url)
        error = envelope.get("error")
        if error is not None and envelope.get("data") is None:
            if _is_read_back_denied(error):
                return self._read_back_denied(url, response.status_code, error, check_read_back)
            raise FetchError(response.status_code, error)

        return envelope.get("data")

    async def _send(self, method: str, url: str, body: Optional[str]) -> httpx.Response:
        headers = {"content-type": "application/json"} if body is not None else None
        try:
            if self.http_client is not None:
                return await self.http_client.request(method, url, content=body, headers=headers)

            async with httpx.AsyncClient(timeout=self.config.request_timeout) as client:
                return await client.request(method, url, content=body, headers=headers)

        except httpx.HTTPError as exc:
            self.logger.error("Model API request error", method=method, url=url, error=str(exc))
            raise

    def _decode(self, text: str, url: str) -> Dict[str, Any]:
        try:
            return unmarshal_response(text)
        except DECODE_ERRORS as exc:
            self.logger.error("Unable to deserialize data", url=url, payload=text, error=str(exc))
            raise DeserializationError(details={"url": url, "payload": text}) from exc

    def _error_payload(self, text: str) -> Optional[Dict[str, Any]]:
        try:
            envelope = unmarshal_response(text)
        except DECODE_ERRORS:
            self.logger.warning("Unparseable error response", payload=text)
            return None
        error = envelope.get("error")
        return error if isinstance(error, dict) else None

    def _read_back_denied(self, url: str, status: int, error: Dict[str, Any], check_read_back: bool) -> None:
        if not check_read_back:
            raise ReadBackDeniedError(status, error)
        self.logger.info("Mutation result not readable, resolving to empty result", url=url, status_code=status)
        return None


def _is_read_back_denied(error: Any) -> bool:
    return (
        isinstance(error, dict)
        and error.get("prisma") is True
        and error.get("code") == READ_BACK_DENIED_CODE
        and error.get("reason") == READ_BACK_DENIED_REASON
    )
