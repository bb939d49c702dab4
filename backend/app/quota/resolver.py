"""Plan resolvers - answer "which plan does this identity hold"."""

import logging
from collections.abc import Mapping
from typing import Any, Protocol
from urllib.parse import quote

import httpx

from backend.app.errors import TransientStoreError
from backend.app.models.common import PlanTier

logger = logging.getLogger(__name__)

# Highest tier first; an identity holding several plans gets the best one
_TIER_PRECEDENCE = (PlanTier.pro, PlanTier.standard, PlanTier.free)


class PlanResolver(Protocol):
    """Capability injected into the quota ledger."""

    async def resolve(self, identity: str | None) -> PlanTier:
        """Resolve the plan held by an identity.

        Args:
            identity: Owner identity, or None for anonymous callers

        Returns:
            Plan tier; anonymous or unknown identities get the lowest tier
        """
        ...


class StaticPlanResolver:
    """Resolver backed by a fixed identity -> plan mapping."""

    def __init__(
        self,
        plans: Mapping[str, PlanTier] | None = None,
        default: PlanTier = PlanTier.free,
    ) -> None:
        self._plans = dict(plans or {})
        self._default = default

    async def resolve(self, identity: str | None) -> PlanTier:
        """Resolve from the mapping, falling back to the default tier."""
        if identity is None:
            return PlanTier.free
        return self._plans.get(identity, self._default)


def pick_highest_tier(plan_keys: list[str]) -> PlanTier:
    """Pick the best tier out of the plan keys an identity holds."""
    held = {key.strip().lower() for key in plan_keys}
    for tier in _TIER_PRECEDENCE:
        if tier.value in held:
            return tier
    return PlanTier.free


class HttpPlanResolver:
    """Resolver that asks the external identity provider over HTTP.

    Expects ``GET {base_url}/users/{identity}`` to return JSON carrying either
    a ``plans`` list or a single ``plan`` string.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout_s: float = 4.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize resolver.

        Args:
            base_url: Identity provider base URL
            api_key: Bearer token for the provider (optional)
            timeout_s: Request timeout when the resolver owns its client
            client: Optional httpx client (for testing with mocks)
        """
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout_s = timeout_s
        self._client = client

    async def resolve(self, identity: str | None) -> PlanTier:
        """Resolve the identity's plan via the provider.

        Raises:
            TransientStoreError: On network errors, non-404 HTTP failures or
                a response body that is not a JSON object
        """
        if identity is None:
            return PlanTier.free

        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}

        close_client = False
        client = self._client
        if client is None:
            client = httpx.AsyncClient(timeout=self._timeout_s)
            close_client = True

        try:
            response = await client.get(
                f"{self._base_url}/users/{quote(identity, safe='')}", headers=headers
            )

            if response.status_code == httpx.codes.NOT_FOUND:
                return PlanTier.free

            response.raise_for_status()
            data: Any = response.json()
        except httpx.HTTPError as e:
            logger.error(f"[plan_resolver] lookup failed for identity={identity}: {e}")
            raise TransientStoreError("Plan lookup is temporarily unavailable") from e
        except ValueError as e:
            logger.error(f"[plan_resolver] non-JSON response for identity={identity}: {e}")
            raise TransientStoreError("Plan lookup returned an unreadable response") from e
        finally:
            if close_client:
                await client.aclose()

        if not isinstance(data, dict):
            logger.error(
                f"[plan_resolver] unexpected {type(data).__name__} payload for identity={identity}"
            )
            raise TransientStoreError("Plan lookup returned an unreadable response")

        plans = data.get("plans")
        if isinstance(plans, list):
            return pick_highest_tier([str(p) for p in plans])

        plan = data.get("plan")
        if isinstance(plan, str):
            return pick_highest_tier([plan])

        return PlanTier.free
