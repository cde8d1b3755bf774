"""SMS channel senders."""

from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any

import httpx

from notification_service.core.exceptions import ChannelError, TransientInfraError
from notification_service.features.notifications.channels.base import SendResult
from notification_service.features.notifications.failures import (
    FailureReason,
    classify_exception,
    is_retryable_status,
)
from notification_service.infra.logging import get_lazy_logger

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

_RESERVED_PARAMS = frozenset({"To", "From", "Body"})
_INVALID_DESTINATION_STATUSES = frozenset({400, 404})


class HttpSmsSender:
    """Send SMS through a Twilio-compatible REST API.

    Posts ``To``/``From``/``Body`` as form data to
    ``{api_url}/Accounts/{account_sid}/Messages.json`` with basic auth.
    Notification properties are forwarded as extra message parameters
    (scalars as strings, structured values as JSON), except that they can
    never override the three reserved fields.

    Outcome mapping:
        - 2xx: ``SendResult`` carrying the provider ``sid``
        - 400/404: ``ChannelError("InvalidDestination")``
        - other 4xx (except 408/425/429): ``ChannelError("ChannelRejected")``
        - 5xx, 408, 425, 429 and transport errors: ``TransientInfraError``
    """

    def __init__(
        self,
        api_url: str,
        account_sid: str,
        auth_token: str,
        from_number: str,
        *,
        timeout_seconds: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_url = api_url.rstrip("/")
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout_seconds = timeout_seconds
        self._client = client

    async def send(
        self,
        contact: str,
        text: str,
        properties: dict[str, Any],
    ) -> SendResult:
        data = self._build_form(contact, text, properties)
        url = f"{self.api_url}/Accounts/{self.account_sid}/Messages.json"

        start_time = time.perf_counter()
        try:
            response = await self._post(url, data)
        except httpx.TransportError as e:
            raise classify_exception(e, operation="send") from e
        response_time_ms = int((time.perf_counter() - start_time) * 1000)

        status_code = response.status_code
        if 200 <= status_code < 300:
            body = _json_body(response)
            result = SendResult(
                provider_message_id=body.get("sid"),
                status_code=status_code,
                response_time_ms=response_time_ms,
                metadata={"provider_status": body.get("status")},
            )
            lazy_logger.debug(
                lambda: f"sms.send: accepted sid={result.provider_message_id} in {response_time_ms}ms"
            )
            return result

        provider_message = _json_body(response).get("message") or response.text[:200]
        detail = f"SMS provider returned HTTP {status_code}: {provider_message}"

        if is_retryable_status(status_code):
            logger.warning(
                "SMS provider temporarily unavailable",
                extra={
                    "status_code": status_code,
                    "response_time_ms": response_time_ms,
                    "operation": "sms.send",
                },
            )
            raise TransientInfraError(
                detail, operation="send", extra={"status_code": status_code}
            )

        reason = (
            FailureReason.INVALID_DESTINATION
            if status_code in _INVALID_DESTINATION_STATUSES
            else FailureReason.CHANNEL_REJECTED
        )
        logger.info(
            "SMS rejected by provider",
            extra={
                "status_code": status_code,
                "reason": reason,
                "response_time_ms": response_time_ms,
                "operation": "sms.send",
            },
        )
        raise ChannelError(reason, detail=detail, extra={"status_code": status_code})

    def _build_form(
        self, contact: str, text: str, properties: dict[str, Any]
    ) -> dict[str, str]:
        form: dict[str, str] = {}
        for key, value in properties.items():
            if key in _RESERVED_PARAMS or value is None:
                continue
            if isinstance(value, str):
                form[key] = value
            elif isinstance(value, (bool, int, float)):
                form[key] = json.dumps(value)
            else:
                form[key] = json.dumps(value, separators=(",", ":"))
        form.update({"To": contact, "From": self.from_number, "Body": text})
        return form

    async def _post(self, url: str, data: dict[str, str]) -> httpx.Response:
        auth = (self.account_sid, self.auth_token)
        if self._client is not None:
            return await self._client.post(url, data=data, auth=auth)
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            return await client.post(url, data=data, auth=auth)


class LoggingSmsSender:
    """Log messages instead of sending them (local development)."""

    async def send(
        self,
        contact: str,
        text: str,
        properties: dict[str, Any],
    ) -> SendResult:
        message_id = f"log-{uuid.uuid4().hex}"
        logger.info(
            "SMS send (logging backend)",
            extra={
                "to": _mask_number(contact),
                "body_length": len(text),
                "property_keys": sorted(properties),
                "provider_message_id": message_id,
                "operation": "sms.send",
            },
        )
        return SendResult(provider_message_id=message_id, metadata={"backend": "log"})


def _json_body(response: httpx.Response) -> dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _mask_number(number: str) -> str:
    """Keep only the last four digits of a phone number for logs."""
    if len(number) <= 4:
        return "*" * len(number)
    return "*" * (len(number) - 4) + number[-4:]


__all__ = ["HttpSmsSender", "LoggingSmsSender"]
