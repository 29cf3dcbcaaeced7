"""
Caller identity.

Tokens are issued elsewhere; this module only verifies a bearer JWT and turns
its claims into an `Identity`. Roles are parsed into the closed `Role` enum so
a misspelt role string can never match a capability check.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Iterable, Optional

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from gymbook.core.config import Settings, get_settings
from gymbook.core.exceptions import AuthenticationError


class Role(str, Enum):
    ADMIN = "admin"
    MEMBER = "member"
    LIMITED_MEMBER = "limited-member"
    TRAINER = "trainer"


class MembershipTier(str, Enum):
    FULL = "full"
    LIMITED = "limited"
    NONE = "none"


def parse_roles(raw: Optional[Iterable[str] | str]) -> frozenset[Role]:
    """Parse role tags from a list or a comma separated string, ignoring unknown tags."""
    if raw is None:
        return frozenset()
    if isinstance(raw, str):
        raw = raw.split(",")
    roles = set()
    for tag in raw:
        try:
            roles.add(Role(tag.strip()))
        except ValueError:
            continue
    return frozenset(roles)


def membership_tier_for(roles: frozenset[Role]) -> MembershipTier:
    if Role.MEMBER in roles:
        return MembershipTier.FULL
    if Role.LIMITED_MEMBER in roles:
        return MembershipTier.LIMITED
    return MembershipTier.NONE


@dataclass(frozen=True)
class Identity:
    uid: int
    email: str
    roles: frozenset[Role]
    expires_at: datetime
    phone: Optional[str] = None

    def has_role(self, role: Role) -> bool:
        return role in self.roles

    @property
    def is_admin(self) -> bool:
        return Role.ADMIN in self.roles

    @property
    def membership_tier(self) -> MembershipTier:
        return membership_tier_for(self.roles)


def create_access_token(
    uid: int,
    email: str,
    roles: Iterable[str],
    secret: str,
    algorithm: str = "HS256",
    expires_delta: timedelta = timedelta(hours=1),
    phone: Optional[str] = None,
) -> str:
    expire = datetime.now(timezone.utc) + expires_delta
    payload = {
        "uid": uid,
        "email": email,
        "roles": [r.value if isinstance(r, Role) else r for r in roles],
        "phone": phone,
        "exp": expire,
    }
    return jwt.encode(payload, secret, algorithm=algorithm)


def verify_token(token: str, secret: str, algorithm: str = "HS256") -> Identity:
    """Decode a JWT into an Identity. Raises AuthenticationError on any failure."""
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=[algorithm],
            options={"require": ["exp", "uid"]},
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("token has expired")
    except jwt.PyJWTError as e:
        raise AuthenticationError(f"invalid token: {e}")

    try:
        uid = int(claims["uid"])
    except (TypeError, ValueError):
        raise AuthenticationError("invalid token: uid claim is not an integer")

    return Identity(
        uid=uid,
        email=claims.get("email", ""),
        roles=parse_roles(claims.get("roles")),
        expires_at=datetime.fromtimestamp(claims["exp"], tz=timezone.utc),
        phone=claims.get("phone"),
    )


bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> Identity:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("missing bearer token")
    return verify_token(credentials.credentials, settings.SECRET_KEY, settings.ALGORITHM)
