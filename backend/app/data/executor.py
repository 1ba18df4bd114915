"""
Request executor — one logical HTTP call against the Land Registry API.

Every failure class is folded into a ResultEnvelope error:
  - transport failures (DNS, refused, timeout)  → NETWORK_ERROR
  - non-2xx responses                            → server's own code, else HTTP_<status>
  - bodies that don't parse or match the schema  → DECODE_ERROR

The executor never interprets payloads beyond schema validation and never
raises to the caller. Cancellation is the one exception: a cancelled task
propagates CancelledError and httpx aborts the underlying request.
"""

import logging
from typing import Any, Callable, Mapping, Optional

import httpx
from pydantic import ValidationError

from app.schemas.envelope import (
    DECODE_ERROR,
    NETWORK_ERROR,
    ResultEnvelope,
    http_error_code,
)

logger = logging.getLogger(__name__)

_DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}

HeaderProvider = Callable[[], Mapping[str, str]]

_NO_BODY = object()


def _message_text(value: Any) -> Optional[str]:
    """Server messages arrive as a string or, for validation failures, a list of strings."""
    if isinstance(value, str) and value:
        return value
    if isinstance(value, list) and value:
        return "; ".join(str(m) for m in value)
    return None


class RequestExecutor:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        header_provider: Optional[HeaderProvider] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._header_provider = header_provider
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self._base_url,
            timeout=timeout,
            transport=transport,
            headers=_DEFAULT_HEADERS,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "RequestExecutor":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ── Public calls ───────────────────────────────────────────────────────

    async def get(
        self,
        path: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
        response_model: Any = None,
    ) -> ResultEnvelope:
        return await self.request("GET", path, params=params, headers=headers, response_model=response_model)

    async def post(
        self,
        path: str,
        *,
        json: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        response_model: Any = None,
    ) -> ResultEnvelope:
        return await self.request("POST", path, json=json, headers=headers, response_model=response_model)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        json: Any = None,
        headers: Optional[Mapping[str, str]] = None,
        response_model: Any = None,
    ) -> ResultEnvelope:
        """
        Perform one call and decode the body as ResultEnvelope[response_model].
        With no response_model the envelope's data is left as raw JSON.
        """
        response = await self._send(method, path, params=params, json=json, headers=headers)
        if isinstance(response, ResultEnvelope):
            return response
        return self._decode(method, path, response, response_model)

    async def get_bytes(self, path: str, *, headers: Optional[Mapping[str, str]] = None) -> ResultEnvelope:
        """Binary download (CSV exports). Same error taxonomy, no JSON decoding on success."""
        merged = {"Accept": "*/*", **(headers or {})}
        response = await self._send("GET", path, headers=merged)
        if isinstance(response, ResultEnvelope):
            return response
        if not response.is_success:
            return self._http_failure("GET", path, response, self._parse_json(response))
        return ResultEnvelope.ok(response.content)

    # ── Internals ──────────────────────────────────────────────────────────

    def _headers(self, extra: Optional[Mapping[str, str]]) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self._header_provider is not None:
            headers.update(self._header_provider())
        if extra:
            headers.update(extra)
        return headers

    async def _send(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, str]] = None,
        json: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> httpx.Response | ResultEnvelope:
        try:
            return await self._client.request(
                method,
                path,
                params=params or None,
                json=json,
                headers=self._headers(headers),
            )
        except httpx.TransportError as e:
            logger.error(f"Land Registry {method} {path} unreachable: {e!r}")
            return ResultEnvelope.fail(
                NETWORK_ERROR,
                str(e) or e.__class__.__name__,
                {"method": method, "path": path, "exception": e.__class__.__name__},
            )
        except httpx.DecodingError as e:
            logger.error(f"Land Registry {method} {path} returned an undecodable body: {e}")
            return ResultEnvelope.fail(DECODE_ERROR, str(e), {"method": method, "path": path})
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.error(f"Land Registry {method} {path} failed: {e!r}")
            return ResultEnvelope.fail(
                NETWORK_ERROR,
                str(e) or e.__class__.__name__,
                {"method": method, "path": path, "exception": e.__class__.__name__},
            )

    @staticmethod
    def _parse_json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return _NO_BODY

    def _decode(self, method: str, path: str, response: httpx.Response, response_model: Any) -> ResultEnvelope:
        payload = self._parse_json(response)

        if not response.is_success:
            return self._http_failure(method, path, response, payload)

        if payload is _NO_BODY:
            logger.error(f"Land Registry {method} {path}: response body is not JSON")
            return ResultEnvelope.fail(
                DECODE_ERROR,
                "Response body is not valid JSON",
                {"status": response.status_code, "body": response.text[:200]},
            )

        envelope_type = ResultEnvelope[response_model] if response_model is not None else ResultEnvelope
        try:
            envelope = envelope_type.model_validate(payload)
        except ValidationError as e:
            logger.error(f"Land Registry {method} {path}: unexpected response shape ({e.error_count()} errors)")
            return ResultEnvelope.fail(
                DECODE_ERROR,
                "Response does not match the expected schema",
                {
                    "status": response.status_code,
                    "errors": [
                        {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
                        for err in e.errors()[:10]
                    ],
                },
            )

        if not envelope.success:
            logger.warning(f"Land Registry {method} {path} rejected: {envelope.error.code} {envelope.error.message}")
        return envelope

    def _http_failure(self, method: str, path: str, response: httpx.Response, payload: Any) -> ResultEnvelope:
        status = response.status_code
        code = http_error_code(status)
        message = response.reason_phrase or code
        details: dict[str, Any] = {"status": status}

        if isinstance(payload, dict):
            error = payload.get("error")
            if isinstance(error, dict):
                server_code = error.get("code")
                if isinstance(server_code, str) and server_code:
                    code = server_code
                elif server_code is not None:
                    details["server_code"] = server_code
                message = _message_text(error.get("message")) or message
                if error.get("details") is not None:
                    details["server_details"] = error["details"]
            else:
                message = _message_text(payload.get("message")) or _message_text(error) or message

        if status >= 500:
            logger.error(f"Land Registry {method} {path} → {status}: {message}")
        else:
            logger.warning(f"Land Registry {method} {path} → {status}: {message}")
        return ResultEnvelope.fail(code, message, details)
