"""Async client for the SoftLayer REST API.

Calls map onto ``{endpoint}/{Service}[/{id}][/{method}].json``. Reads are
GETs, creates POST to the service root, edits PUT to the object, deletes
DELETE the object, and any other method with parameters is a POST.
Returns decoded JSON as-is.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from converge.infra.http import BasicAuth, HttpClient, HttpError
from converge.infra.retry import on_status_code, retry
from converge.observability.logging import logger

from .config import SoftLayer

RETRYABLE_STATUS = (0, 429, 500, 502, 503, 504)
NOT_FOUND_CODES = frozenset({"SoftLayer_Exception_ObjectNotFound", "SoftLayer_Exception_NotFound"})


class SoftLayerError(Exception):
    """Error returned by the SoftLayer API."""

    def __init__(self, status: int, message: str, code: str | None = None) -> None:
        self.status = status
        self.code = code
        self.message = message
        super().__init__(f"SoftLayer API error {status} ({code or 'unknown'}): {message}")

    @property
    def not_found(self) -> bool:
        return self.status == 404 or self.code in NOT_FOUND_CODES

    @classmethod
    def from_http(cls, e: HttpError) -> SoftLayerError:
        try:
            payload = json.loads(e.body)
        except ValueError:
            return cls(e.status, e.body)
        if not isinstance(payload, dict):
            return cls(e.status, e.body)
        return cls(e.status, str(payload.get("error", e.body)), payload.get("code"))


class SoftLayerClient:
    """Thin async wrapper over the SoftLayer REST endpoint.

    Example:
        async with SoftLayerClient(SoftLayer(username="me", api_key="...")) as client:
            state = await client.call("SoftLayer_Virtual_Guest", "getPowerState", 42)
    """

    def __init__(
        self,
        config: SoftLayer,
        http: HttpClient | None = None,
        *,
        retry_delay: float = 1.0,
    ) -> None:
        self.config = config
        self._http = http or HttpClient(
            config.endpoint,
            BasicAuth(config.username, config.api_key),
            timeout=config.request_timeout,
        )
        self._send = retry(
            on=on_status_code(*RETRYABLE_STATUS),
            max_attempts=config.max_attempts,
            base_delay=retry_delay,
        )(self._send_once)
        self._log = logger.bind(component="softlayer")

    async def __aenter__(self) -> SoftLayerClient:
        await self._http.__aenter__()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self._http.__aexit__(*exc)

    async def call(
        self,
        service: str,
        method: str | None = None,
        resource_id: int | None = None,
        *,
        parameters: list[Any] | None = None,
        mask: str | None = None,
        verb: Literal["GET", "POST", "PUT", "DELETE"] | None = None,
    ) -> Any:
        """Invoke a SoftLayer service method.

        Args:
            service: Service name, e.g. "SoftLayer_Virtual_Guest".
            method: Method name; None addresses the object (or service) itself.
            resource_id: Init parameter (object id), if any.
            parameters: Positional method parameters.
            mask: Object mask, e.g. "id;hostname".
            verb: HTTP verb override. Defaults to POST when parameters are
                given, GET otherwise.

        Raises:
            SoftLayerError: On any API or transport error.
        """
        path = f"/{service}"
        if resource_id is not None:
            path += f"/{resource_id}"
        if method is not None:
            path += f"/{method}"
        path += ".json"

        http_verb = verb or ("POST" if parameters is not None else "GET")
        body = {"parameters": parameters} if parameters is not None else None
        params = {"objectMask": f"mask[{mask}]"} if mask else None

        try:
            return await self._send(http_verb, path, json=body, params=params)
        except HttpError as e:
            raise SoftLayerError.from_http(e) from e

    async def _send_once(
        self,
        verb: str,
        path: str,
        *,
        json: dict[str, Any] | None,
        params: dict[str, Any] | None,
    ) -> Any:
        return await self._http.request(verb, path, json=json, params=params)  # type: ignore[arg-type]
