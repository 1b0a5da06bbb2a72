from __future__ import annotations

from contextvars import ContextVar
from typing import Optional

from fastapi import Header


# Context variable storing the identifier of the user acting in the in-flight
# request. Authentication happens upstream; the identity header is trusted.
_current_actor: ContextVar[Optional[str]] = ContextVar("current_actor", default=None)


def get_current_actor() -> Optional[str]:
    """Return the current actor identifier.

    In HTTP requests this is set by :func:`actor_dependency`. In non-request
    contexts (e.g., direct service calls in tests) it is None unless the
    caller passes an explicit actor.
    """

    return _current_actor.get()


async def actor_dependency(
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
) -> Optional[str]:
    """FastAPI dependency that establishes the acting user for a request."""

    actor = x_user_id.strip() if x_user_id and x_user_id.strip() else None
    _current_actor.set(actor)
    return actor
