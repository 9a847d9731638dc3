"""Access token -> Session decoding.

Hey future me - we read the claims WITHOUT verifying the signature. That's fine here:
the client never makes trust decisions from these claims, the backend verifies every
request. We only need to know who is logged in and whether to show the admin UI.
"""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from jose import jwt
from jose.exceptions import JWTError

from eventy.domain.entities import Role, Session
from eventy.domain.exceptions import TokenDecodeError

logger = logging.getLogger(__name__)


# Listen up, this scan is CASE-INSENSITIVE on purpose. Keycloak realms have been seen
# emitting "admin", "ADMIN" and "Admin" depending on who created the role. Any entry
# matching "admin" wins; anything else (or no roles at all) is a plain USER.
def derive_role(roles: Iterable[Any] | None) -> Role:
    """Derive the application role from a roles collection."""
    if not roles or isinstance(roles, str):
        return Role.USER
    for entry in roles:
        if isinstance(entry, str) and entry.casefold() == "admin":
            return Role.ADMIN
    return Role.USER


def _extract_roles(claims: dict[str, Any]) -> list[Any]:
    realm_access = claims.get("realm_access")
    if isinstance(realm_access, dict) and isinstance(realm_access.get("roles"), list):
        return list(realm_access["roles"])
    roles = claims.get("roles")
    if isinstance(roles, list):
        return list(roles)
    return []


def decode_session(access_token: str, now: datetime | None = None) -> Session:
    """Decode an access token into a Session.

    Args:
        access_token: Opaque bearer string (a JWT)
        now: Reference time for the expiry check (defaults to current UTC time)

    Returns:
        Session snapshot

    Raises:
        TokenDecodeError: Malformed token, missing subject, or expired token
    """
    if not access_token or not access_token.strip():
        raise TokenDecodeError("Empty access token")

    try:
        claims = jwt.get_unverified_claims(access_token)
    except JWTError as e:
        raise TokenDecodeError(f"Malformed access token: {e}") from e

    if not isinstance(claims, dict):
        raise TokenDecodeError("Access token claims are not an object")

    subject_id = claims.get("sub")
    if not subject_id:
        raise TokenDecodeError("Access token has no subject")

    token_expiry: datetime | None = None
    exp = claims.get("exp")
    if exp is not None:
        try:
            token_expiry = datetime.fromtimestamp(float(exp), tz=UTC)
        except (TypeError, ValueError, OverflowError, OSError) as e:
            raise TokenDecodeError(f"Invalid exp claim: {exp!r}") from e
        if (now or datetime.now(UTC)) >= token_expiry:
            raise TokenDecodeError("Access token is expired")

    display_name = claims.get("name") or claims.get("preferred_username") or str(subject_id)

    return Session(
        subject_id=str(subject_id),
        display_name=str(display_name),
        email=claims.get("email"),
        role=derive_role(_extract_roles(claims)),
        access_token=access_token,
        token_expiry=token_expiry,
    )
