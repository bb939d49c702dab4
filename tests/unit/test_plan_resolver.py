"""Tests for plan resolvers."""

import httpx
import pytest

from backend.app.errors import TransientStoreError
from backend.app.models.common import PlanTier
from backend.app.quota.resolver import HttpPlanResolver, StaticPlanResolver, pick_highest_tier


@pytest.mark.asyncio
async def test_static_resolver_uses_mapping_and_default() -> None:
    """Known identities get their plan; others get the default."""
    resolver = StaticPlanResolver({"alice": PlanTier.pro}, default=PlanTier.standard)

    assert await resolver.resolve("alice") == PlanTier.pro
    assert await resolver.resolve("bob") == PlanTier.standard


@pytest.mark.asyncio
async def test_static_resolver_anonymous_is_free() -> None:
    """Anonymous callers always resolve to the lowest tier."""
    resolver = StaticPlanResolver(default=PlanTier.pro)

    assert await resolver.resolve(None) == PlanTier.free


def test_pick_highest_tier() -> None:
    """The best held plan wins; unknown keys are ignored."""
    assert pick_highest_tier(["standard", "pro"]) == PlanTier.pro
    assert pick_highest_tier([" Standard "]) == PlanTier.standard
    assert pick_highest_tier(["enterprise-trial"]) == PlanTier.free
    assert pick_highest_tier([]) == PlanTier.free


@pytest.mark.asyncio
async def test_http_resolver_parses_plans_list() -> None:
    """Test that the resolver reads the provider's plans list."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "user-1", "plans": ["free", "standard"]})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    resolver = HttpPlanResolver("https://idp.example.com/", api_key="secret", client=client)

    plan = await resolver.resolve("user-1")

    assert plan == PlanTier.standard
    assert str(seen[0].url) == "https://idp.example.com/users/user-1"
    assert seen[0].headers["Authorization"] == "Bearer secret"


@pytest.mark.asyncio
async def test_http_resolver_single_plan_string() -> None:
    """Test the single "plan" field form."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"plan": "pro"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    resolver = HttpPlanResolver("https://idp.example.com", client=client)

    assert await resolver.resolve("user-1") == PlanTier.pro


@pytest.mark.asyncio
async def test_http_resolver_unknown_user_is_free() -> None:
    """Test that a 404 from the provider means the free tier."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json={"detail": "not found"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    resolver = HttpPlanResolver("https://idp.example.com", client=client)

    assert await resolver.resolve("ghost") == PlanTier.free


@pytest.mark.asyncio
async def test_http_resolver_anonymous_skips_lookup() -> None:
    """Test that anonymous callers never hit the provider."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("provider should not be called")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    resolver = HttpPlanResolver("https://idp.example.com", client=client)

    assert await resolver.resolve(None) == PlanTier.free


@pytest.mark.asyncio
async def test_http_resolver_server_error_is_transient() -> None:
    """Test that provider outages surface as TransientStoreError."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    resolver = HttpPlanResolver("https://idp.example.com", client=client)

    with pytest.raises(TransientStoreError):
        await resolver.resolve("user-1")


@pytest.mark.asyncio
async def test_http_resolver_network_error_is_transient() -> None:
    """Test that connection failures surface as TransientStoreError."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    resolver = HttpPlanResolver("https://idp.example.com", client=client)

    with pytest.raises(TransientStoreError):
        await resolver.resolve("user-1")


@pytest.mark.asyncio
async def test_http_resolver_non_json_body_is_transient() -> None:
    """Test that a 200 with a non-JSON body surfaces as TransientStoreError."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>bad gateway</html>")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    resolver = HttpPlanResolver("https://idp.example.com", client=client)

    with pytest.raises(TransientStoreError):
        await resolver.resolve("user-1")


@pytest.mark.asyncio
async def test_http_resolver_non_object_body_is_transient() -> None:
    """Test that a JSON body other than an object surfaces as TransientStoreError."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=["pro"])

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    resolver = HttpPlanResolver("https://idp.example.com", client=client)

    with pytest.raises(TransientStoreError):
        await resolver.resolve("user-1")


@pytest.mark.asyncio
async def test_http_resolver_escapes_identity_in_path() -> None:
    """Test that identities cannot add query strings or path segments."""
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"plan": "free"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    resolver = HttpPlanResolver("https://idp.example.com", client=client)

    await resolver.resolve("x?plan=pro")
    await resolver.resolve("../admin")

    assert seen[0].url.raw_path == b"/users/x%3Fplan%3Dpro"
    assert seen[0].url.query == b""
    assert seen[1].url.raw_path == b"/users/..%2Fadmin"
