"""Request context for ownership enforcement."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RequestContext:
    """Request context carrying the authenticated identity.

    ``user_id`` is the opaque subject issued by the external identity
    provider. Used to check ownership on every write.
    """

    user_id: str
