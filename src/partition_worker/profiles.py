"""
User profile resolution interface.

Onboarding a user exchanges an OAuth authorization code for the user's
profile and a durable refresh credential. The shard pipeline never calls a
resolver; it is carried on WorkerContext so components sharing the process
receive the same instance.
"""

from typing import Dict, Mapping, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from core.errors import PermanentError


class UserProfile(BaseModel):
    """Schema for a resolved user profile.

    The refresh token is a SecretStr so it never appears in repr() or logs.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1, description="Stable user identifier")
    email: str = Field(..., description="Primary email address")
    refresh_token: SecretStr = Field(..., description="Durable refresh credential")


class ProfileNotFoundError(PermanentError):
    """Authorization code did not resolve to a profile."""

    pass


@runtime_checkable
class ProfileResolver(Protocol):
    """Resolves an authorization code to a user profile."""

    async def resolve_profile(self, auth_code: str) -> UserProfile:
        ...


class StaticProfileResolver:
    """
    ProfileResolver over a fixed code -> profile mapping.

    Used in dev mode and tests.
    """

    def __init__(self, profiles: Mapping[str, UserProfile]):
        self._profiles: Dict[str, UserProfile] = dict(profiles)

    async def resolve_profile(self, auth_code: str) -> UserProfile:
        try:
            return self._profiles[auth_code]
        except KeyError:
            raise ProfileNotFoundError("Unknown authorization code") from None


__all__ = [
    "ProfileNotFoundError",
    "ProfileResolver",
    "StaticProfileResolver",
    "UserProfile",
]
