"""Authentication dependencies.

Tokens are issued by the identity service; this service only verifies them
and turns their claims into an Actor. Membership and role are re-validated
by the engine on every operation.
"""

from typing import Annotated, Any
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status

from src.tapcards.core.logging import bind_actor_context
from src.tapcards.core.security import decode_token
from src.tapcards.domain.actor import Actor

ACCESS_TOKEN_TYPE = "access"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _parse_uuid(payload: dict[str, Any], claim: str) -> UUID:
    try:
        return UUID(str(payload.get(claim, "")))
    except ValueError as e:
        raise _unauthorized(f"Invalid {claim} in token") from e


def actor_from_token(token: str) -> Actor:
    payload = decode_token(token)
    if payload is None:
        raise _unauthorized("Invalid or expired token")
    if payload.get("type") != ACCESS_TOKEN_TYPE:
        raise _unauthorized("Invalid token type")

    email = payload.get("email")
    if not email:
        raise _unauthorized("Invalid token payload")

    return Actor(
        user_id=_parse_uuid(payload, "sub"),
        tenant_id=_parse_uuid(payload, "tenant_id"),
        email=email,
        role=payload.get("role"),
    )


async def get_current_actor(
    authorization: Annotated[str | None, Header()] = None,
) -> Actor:
    """Validate the bearer token and return the acting user."""
    if not authorization or not authorization.startswith("Bearer "):
        raise _unauthorized("Missing or invalid authorization header")

    actor = actor_from_token(authorization[7:])
    bind_actor_context(actor.user_id, actor.tenant_id, actor.email)
    return actor


CurrentActor = Annotated[Actor, Depends(get_current_actor)]
