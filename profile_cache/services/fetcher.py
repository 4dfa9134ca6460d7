"""
Fetchers - the network side of the cache.

Fetcher is the protocol CacheCoordinator depends on. ProfileFetcher is the
httpx implementation for the conversations API: it loads a conversation and
reshapes it into a ClientProfile, raising errors that classify_error
understands.
"""

from datetime import datetime, timezone
from typing import Protocol, TypeVar
from urllib.parse import quote

import httpx
from loguru import logger
from pydantic import ValidationError

from profile_cache.models import (
    ClientProfile,
    ContactDetails,
    ConversationData,
    ConversationEnvelope,
    ConversationSummary,
)
from profile_cache.services.errors import (
    FetchError,
    RateLimitError,
    RequestTimeoutError,
    ServiceUnavailableError,
)

T_co = TypeVar("T_co", covariant=True)


class Fetcher(Protocol[T_co]):
    """Performs the actual network call for a key."""

    async def fetch(self, key: str) -> T_co: ...


def format_time_ago(timestamp: str, now: datetime | None = None) -> str:
    """Render an ISO timestamp as a short relative time."""
    try:
        then = datetime.fromisoformat(timestamp)
    except (TypeError, ValueError):
        return timestamp
    if then.tzinfo is None:
        then = then.replace(tzinfo=timezone.utc)

    now = now or datetime.now(timezone.utc)
    minutes = int((now - then).total_seconds() // 60)

    if minutes < 1:
        return "just now"
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''} ago"

    hours = minutes // 60
    if hours < 24:
        return f"{hours} hour{'s' if hours != 1 else ''} ago"

    days = hours // 24
    if days < 7:
        return f"{days} day{'s' if days != 1 else ''} ago"

    return then.strftime("%d %b")


def build_profile(
    data: ConversationData,
    now: datetime | None = None,
) -> ClientProfile:
    """Reshape an upstream conversation into a ClientProfile."""
    try:
        client_since = str(datetime.fromisoformat(data.created_at).year)
    except ValueError:
        client_since = data.created_at[:4]

    return ClientProfile(
        name=data.contact.name or "Unnamed client",
        phone=data.customer_phone,
        status="active",
        channel=data.contact.channel,
        last_contact=format_time_ago(data.last_message_at, now=now),
        client_since=client_since,
        whatsapp_id=data.customer_phone.replace("+", ""),
        tags=list(data.tags),
        conversation=ConversationSummary(
            status=data.status,
            priority=data.priority,
            unread_messages=data.unread_count,
            assigned_to=data.assigned_to.name if data.assigned_to else "Unassigned",
        ),
        contact_details=ContactDetails(
            id=data.contact.id,
            is_active=True,
            total_messages=data.unread_count,
            created_at=data.created_at,
            updated_at=data.last_message_at,
        ),
    )


class ProfileFetcher:
    """
    Fetches client profiles from the conversations API.

    Usage:
        async with ProfileFetcher("https://api.example.com") as fetcher:
            profile = await fetcher.fetch("conv-1")
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        client: httpx.AsyncClient | None = None,
        service_id: str = "profiles",
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._headers = headers or {}
        self._service_id = service_id

        # HTTP client (lazy initialization unless injected)
        self._http_client = client
        self._owns_client = client is None

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
            )
        return self._http_client

    async def fetch(self, key: str) -> ClientProfile:
        """
        Fetch the profile behind conversation `key`.

        Raises:
            RateLimitError: On HTTP 429
            ServiceUnavailableError: On HTTP 503
            RequestTimeoutError: If the request times out
            FetchError: For other HTTP, transport or payload errors
        """
        client = await self._get_http_client()
        url = f"{self._base_url}/api/conversations/{quote(key, safe='')}"

        try:
            response = await client.get(url, headers=self._headers)
            response.raise_for_status()
            payload = response.json()

        except httpx.TimeoutException as e:
            raise RequestTimeoutError(self._service_id, self._timeout) from e

        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            if status == 429:
                retry_after = e.response.headers.get("Retry-After", "")
                raise RateLimitError(
                    self._service_id,
                    float(retry_after) if retry_after.isdigit() else None,
                ) from e
            if status == 503:
                raise ServiceUnavailableError(
                    f"Service '{self._service_id}' unavailable (HTTP 503)",
                    service_id=self._service_id,
                ) from e
            raise FetchError(
                f"HTTP {status}: {e.response.text[:200]}",
                status_code=status,
                service_id=self._service_id,
            ) from e

        except httpx.RequestError as e:
            raise FetchError(str(e), network=True, service_id=self._service_id) from e

        except ValueError as e:
            raise FetchError(
                f"Invalid JSON from {url}: {e}", service_id=self._service_id
            ) from e

        try:
            envelope = ConversationEnvelope.model_validate(payload)
        except ValidationError as e:
            raise FetchError(
                f"Unexpected conversation payload: {e.error_count()} errors",
                service_id=self._service_id,
            ) from e

        if not envelope.success:
            raise FetchError(
                envelope.error or "Conversation request was not successful",
                service_id=self._service_id,
            )
        if envelope.data is None:
            raise FetchError(
                f"Conversation '{key}' has no data",
                status_code=404,
                service_id=self._service_id,
            )

        logger.debug(f"[ProfileFetcher] Fetched profile for {key[:50]}")
        return build_profile(envelope.data)

    async def close(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self._http_client and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    async def __aenter__(self) -> "ProfileFetcher":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
