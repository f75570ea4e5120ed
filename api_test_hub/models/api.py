"""Pydantic models for the authentication, profile and linking API responses.

Every field is optional: responses are read defensively and a missing field
becomes a validation failure of the test, never a crash.
"""

from collections.abc import Sequence

from api_test_hub.models.base import Model


class Tokens(Model):
    """Access/refresh token pair."""

    access_token: str | None = None
    refresh_token: str | None = None


class Account(Model):
    """An account as returned by authentication and the identity graph."""

    id: str | None = None
    type: str | None = None
    identifier: str | None = None


class Profile(Model):
    """A smart profile."""

    id: str | None = None
    name: str | None = None
    is_active: bool = False
    session_wallet_address: str | None = None


class Link(Model):
    """A link between two accounts of the identity graph."""

    account_a_id: str | None = None
    account_b_id: str | None = None
    privacy_mode: str | None = None


class AuthResponse(Model):
    """Response from POST /auth/authenticate."""

    success: bool | None = None
    account: Account | None = None
    active_profile: Profile | None = None
    profiles: Sequence[Profile] | None = None
    tokens: Tokens | None = None
    is_new_user: bool | None = None
    session_id: str | None = None


class SuccessResponse(Model):
    """Generic response carrying only a success flag."""

    success: bool | None = None


class RefreshResponse(Model):
    """Response from POST /auth/refresh."""

    success: bool | None = None
    tokens: Tokens | None = None


class ProfilesResponse(Model):
    """Response from GET /profiles (list under "data" or "profiles")."""

    data: Sequence[Profile] | None = None
    profiles: Sequence[Profile] | None = None

    @property
    def items(self) -> Sequence[Profile] | None:
        """Profile list from whichever key the server used."""
        return self.data if self.data is not None else self.profiles


class ProfileResponse(Model):
    """Response from POST/PUT /profiles (object under "data" or "profile")."""

    success: bool | None = None
    data: Profile | None = None
    profile: Profile | None = None

    @property
    def item(self) -> Profile | None:
        """Profile from whichever key the server used."""
        return self.data if self.data is not None else self.profile


class SwitchProfileResponse(Model):
    """Response from POST /auth/switch-profile/{id}."""

    success: bool | None = None
    active_profile: Profile | None = None


class LinkResponse(Model):
    """Response from POST /auth/link-accounts and PUT /auth/link-privacy."""

    success: bool | None = None
    linked_account: Account | None = None
    link: Link | None = None


class IdentityGraph(Model):
    """Response from GET /auth/identity-graph."""

    accounts: Sequence[Account] = ()
    links: Sequence[Link] = ()
    current_account_id: str | None = None
