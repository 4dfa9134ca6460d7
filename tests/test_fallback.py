import pytest

from profile_cache.models import ClientProfile
from profile_cache.services.fallback import (
    DEFAULT_PHONE,
    HashedFallbackProvider,
    ProfileFallbackProvider,
    StaticFallbackProvider,
    stable_index,
)


def test_stable_index_is_deterministic_and_in_range() -> None:
    assert stable_index("conv-1", 7) == stable_index("conv-1", 7)
    assert all(0 <= stable_index(f"k{i}", 3) < 3 for i in range(50))


def test_hashed_fallback_is_deterministic() -> None:
    provider = HashedFallbackProvider(["red", "green", "blue"])
    assert provider.fallback("conv-1") == provider.fallback("conv-1")
    assert provider.fallback("conv-1") in {"red", "green", "blue"}


def test_hashed_fallback_spreads_keys() -> None:
    provider = HashedFallbackProvider(["red", "green", "blue"])
    assert len({provider.fallback(f"conv-{i}") for i in range(100)}) > 1


def test_fallback_providers_reject_empty_or_none() -> None:
    with pytest.raises(ValueError):
        HashedFallbackProvider([])
    with pytest.raises(ValueError):
        HashedFallbackProvider(["a", None])
    with pytest.raises(ValueError):
        StaticFallbackProvider(None)
    with pytest.raises(ValueError):
        ProfileFallbackProvider(names=[])


def test_static_fallback_returns_independent_copies() -> None:
    provider = StaticFallbackProvider({"tags": []})
    first = provider.fallback("a")
    first["tags"].append("mutated")
    assert provider.fallback("a") == {"tags": []}


def test_profile_fallback_is_deterministic() -> None:
    provider = ProfileFallbackProvider()
    first = provider.fallback("conv-1")
    second = provider.fallback("conv-1")

    assert isinstance(first, ClientProfile)
    assert first == second
    assert first.contact_details.id == "conv-1"


def test_profile_fallback_extracts_phone_from_key() -> None:
    provider = ProfileFallbackProvider()

    profile = provider.fallback("conv-+5215512345678")
    assert profile.phone == "+5215512345678"
    assert profile.whatsapp_id == "5215512345678"

    assert provider.fallback("conv-1").phone == DEFAULT_PHONE


def test_profile_fallback_name_comes_from_configured_set() -> None:
    provider = ProfileFallbackProvider(names=["Only Name"])
    assert provider.fallback("anything").name == "Only Name"
