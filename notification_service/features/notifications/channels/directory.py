"""HTTP user directory adapter."""

from __future__ import annotations

import time
from typing import Any
from urllib.parse import quote

import httpx

from notification_service.core.exceptions import ChannelNotConfiguredError, DirectoryError
from notification_service.features.notifications.channels.base import ContactLookup
from notification_service.features.notifications.failures import is_retryable_status
from notification_service.infra.logging import get_lazy_logger

lazy_logger = get_lazy_logger(__name__)

# channel -> (contact field, confirmation flag field)
CONTACT_FIELDS: dict[str, tuple[str, str]] = {
    "sms": ("phone_number", "phone_number_confirmed"),
    "email": ("email", "email_confirmed"),
    "push": ("push_token", "push_token_confirmed"),
}

# The recipient id cannot name a user: treat like an unknown user
_NOT_FOUND_STATUSES = frozenset({400, 404, 410, 422})


class HttpUserDirectory:
    """Resolve recipients through a user directory REST service.

    ``GET {base_url}/users/{recipient_id}`` is expected to return a JSON user
    document. The contact field and its confirmation flag are picked per
    channel from ``contact_fields``; a missing or empty contact is reported
    as not found. Only a confirmation flag that is literally ``true`` counts
    as confirmed.

    Retryable statuses (429, 5xx) raise ``httpx.HTTPStatusError`` and
    connection problems the underlying ``httpx`` transport error; the
    processor classifies both. Any other error status, and a 2xx body that
    is not a JSON object, raises ``DirectoryError``.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_token: str | None = None,
        timeout_seconds: float = 10.0,
        contact_fields: dict[str, tuple[str, str]] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize directory adapter.

        Args:
            base_url: Directory service base URL
            api_token: Bearer token sent on every lookup
            timeout_seconds: HTTP timeout when the adapter owns its client
            contact_fields: Override of the channel -> field mapping
            client: Shared client (connection pooling, tests with MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout_seconds = timeout_seconds
        self.contact_fields = contact_fields or CONTACT_FIELDS
        self._client = client

    async def resolve(
        self,
        tenant_id: str | None,
        recipient_id: str,
        channel: str,
    ) -> ContactLookup:
        fields = self.contact_fields.get(channel)
        if fields is None:
            raise ChannelNotConfiguredError(channel)
        contact_field, confirmed_field = fields

        start_time = time.perf_counter()
        response = await self._get_user(tenant_id, recipient_id)
        response_time_ms = int((time.perf_counter() - start_time) * 1000)

        lazy_logger.debug(
            lambda: f"directory.resolve: recipient={recipient_id}, channel={channel} -> HTTP {response.status_code} in {response_time_ms}ms"
        )

        if response.status_code in _NOT_FOUND_STATUSES:
            return ContactLookup.not_found(status_code=response.status_code)
        if response.is_error and not is_retryable_status(response.status_code):
            raise DirectoryError(
                f"Directory returned HTTP {response.status_code}",
                status_code=response.status_code,
                extra={"recipient_id": recipient_id},
            )
        response.raise_for_status()

        user = _parse_user(response)
        contact = user.get(contact_field)
        if not isinstance(contact, str) or not contact.strip():
            return ContactLookup.not_found(reason=f"{contact_field} missing")
        if user.get(confirmed_field) is not True:
            return ContactLookup.unconfirmed(reason=f"{confirmed_field} not true")
        return ContactLookup.found(contact.strip())

    async def _get_user(self, tenant_id: str | None, recipient_id: str) -> httpx.Response:
        url = f"{self.base_url}/users/{quote(recipient_id, safe='')}"
        headers = {"Accept": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        if tenant_id is not None:
            headers["X-Tenant-ID"] = tenant_id

        if self._client is not None:
            return await self._client.get(url, headers=headers)
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
            return await client.get(url, headers=headers)


def _parse_user(response: httpx.Response) -> dict[str, Any]:
    try:
        user = response.json()
    except ValueError as e:
        raise DirectoryError(
            "Directory returned a non-JSON body",
            status_code=response.status_code,
            extra={"content_type": response.headers.get("content-type")},
        ) from e
    if not isinstance(user, dict):
        raise DirectoryError(
            f"Directory returned a JSON {type(user).__name__}, expected an object",
            status_code=response.status_code,
        )
    return user


__all__ = ["CONTACT_FIELDS", "HttpUserDirectory"]
