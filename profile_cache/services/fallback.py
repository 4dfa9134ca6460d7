"""
FallbackProvider - Deterministic degraded values.

A fallback must depend only on the key and static configuration, so that a
Consumer asking repeatedly during an outage renders the same thing each time.
"""

import copy
import hashlib
import re
from typing import Generic, Protocol, Sequence, TypeVar

from profile_cache.models import ClientProfile, ContactDetails, ConversationSummary

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


class FallbackProvider(Protocol[T_co]):
    """Produces a usable value for a key when the real one is unavailable."""

    def fallback(self, key: str) -> T_co: ...


def stable_index(key: str, size: int) -> int:
    """Map key onto range(size), identically across processes."""
    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big") % size


class StaticFallbackProvider(Generic[T]):
    """Same value for every key. Each call returns its own copy."""

    def __init__(self, value: T):
        if value is None:
            raise ValueError("Fallback value cannot be None")
        self._value = value

    def fallback(self, key: str) -> T:
        return copy.deepcopy(self._value)


class HashedFallbackProvider(Generic[T]):
    """Picks one of a fixed set of values by hashing the key."""

    def __init__(self, choices: Sequence[T]):
        if not choices:
            raise ValueError("HashedFallbackProvider needs at least one choice")
        if any(choice is None for choice in choices):
            raise ValueError("Fallback choices cannot be None")
        self._choices = list(choices)

    def fallback(self, key: str) -> T:
        return copy.deepcopy(self._choices[stable_index(key, len(self._choices))])


PHONE_PATTERN = re.compile(r"\+(\d+)")
DEFAULT_PHONE = "+5214775211021"
DEFAULT_NAMES = ("Demo Client", "Guest Client", "Pending Client", "Unknown Client")


class ProfileFallbackProvider:
    """
    Degraded ClientProfile for a conversation key.

    The phone number comes from a `+<digits>` fragment in the key when there
    is one; the display name is picked from `names` by hashing the key.
    """

    def __init__(
        self,
        names: Sequence[str] = DEFAULT_NAMES,
        default_phone: str = DEFAULT_PHONE,
        channel: str = "whatsapp",
    ):
        if not names:
            raise ValueError("ProfileFallbackProvider needs at least one name")
        self._names = tuple(names)
        self._default_phone = default_phone
        self._channel = channel

    def fallback(self, key: str) -> ClientProfile:
        match = PHONE_PATTERN.search(key)
        phone = f"+{match.group(1)}" if match else self._default_phone

        return ClientProfile(
            name=self._names[stable_index(key, len(self._names))],
            phone=phone,
            status="active",
            channel=self._channel,
            last_contact="unknown",
            client_since="unknown",
            whatsapp_id=phone.lstrip("+"),
            tags=[],
            conversation=ConversationSummary(
                status="unknown",
                priority="normal",
                unread_messages=0,
                assigned_to="Unassigned",
            ),
            contact_details=ContactDetails(
                id=key,
                is_active=True,
                total_messages=0,
                created_at="",
                updated_at="",
            ),
        )
