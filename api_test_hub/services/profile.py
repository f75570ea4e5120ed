"""Profile scenarios: listing, CRUD, switching and first-time creation."""

import logging
from dataclasses import dataclass
from typing import ClassVar

from api_test_hub.models.api import (
    ProfileResponse,
    ProfilesResponse,
    SuccessResponse,
    SwitchProfileResponse,
)
from api_test_hub.models.result import TestCategory, TestResult
from api_test_hub.services.base import ParseError, TestService, bearer, parse_response

log = logging.getLogger(__name__)

AUTO_PROFILE_NAME = "My Smartprofile"


@dataclass(frozen=True, kw_only=True)
class ProfileTestService(TestService):
    """Exercises /profiles and /auth/switch-profile."""

    category: ClassVar[TestCategory] = "Profile Management"

    async def get_profiles(self, token: str, *, name: str = "Get Profiles") -> TestResult:
        """Pass iff at least one profile exists, one is active and all have wallets."""
        result = self.result(name)
        result.note(access_token=token)
        response = await self.fetch(
            result,
            "GET",
            "/profiles",
            ProfilesResponse,
            code="GET_PROFILES_FAILED",
            failure="Failed to get profiles",
            headers=bearer(token),
        )
        if isinstance(response, TestResult):
            return response
        profiles = response.items or ()
        return result.checked(
            {
                "at least one profile": len(profiles) > 0,
                "one profile active": any(p.is_active for p in profiles),
                "every profile has a session wallet": all(
                    p.session_wallet_address for p in profiles
                ),
            },
            passed=f"Retrieved {len(profiles)} profile(s)",
            failed="Profile validation failed",
        )

    async def create_profile(
        self, token: str, profile_name: str, *, name: str = "Create Additional Profile"
    ) -> TestResult:
        """Create a development-wallet profile and check it round-trips."""
        result = self.result(name)
        result.note(access_token=token)
        response = await self.fetch(
            result,
            "POST",
            "/profiles",
            ProfileResponse,
            code="CREATE_PROFILE_FAILED",
            failure="Failed to create profile",
            headers=bearer(token),
            body={"name": profile_name, "isDevelopmentWallet": True},
        )
        if isinstance(response, TestResult):
            return response
        profile = response.item
        result.note(profile_id=profile.id if profile else None)
        return result.checked(
            {
                "profile id present": bool(profile and profile.id),
                "session wallet present": bool(profile and profile.session_wallet_address),
                f"name is '{profile_name}'": bool(profile and profile.name == profile_name),
            },
            passed=f"Successfully created profile '{profile_name}'",
            failed="Profile creation validation failed",
        )

    async def switch_profile(
        self, token: str, profile_id: str, *, name: str = "Switch Profile"
    ) -> TestResult:
        result = self.result(name)
        result.note(access_token=token, profile_id=profile_id)
        response = await self.fetch(
            result,
            "POST",
            f"/auth/switch-profile/{profile_id}",
            SwitchProfileResponse,
            code="SWITCH_PROFILE_FAILED",
            failure="Failed to switch profile",
            headers=bearer(token),
        )
        if isinstance(response, TestResult):
            return response
        active = response.active_profile
        return result.checked(
            {
                "success flag set": response.success is True,
                "active profile matches": bool(active and active.id == profile_id),
            },
            passed="Successfully switched to profile",
            failed="Profile switch validation failed",
        )

    async def update_profile(
        self, token: str, profile_id: str, profile_name: str, *, name: str = "Update Profile"
    ) -> TestResult:
        result = self.result(name)
        result.note(access_token=token, profile_id=profile_id)
        response = await self.fetch(
            result,
            "PUT",
            f"/profiles/{profile_id}",
            ProfileResponse,
            code="UPDATE_PROFILE_FAILED",
            failure="Failed to update profile",
            headers=bearer(token),
            body={"name": profile_name},
        )
        if isinstance(response, TestResult):
            return response
        profile = response.item
        return result.checked(
            {f"name is '{profile_name}'": bool(profile and profile.name == profile_name)},
            passed=f"Successfully updated profile name to '{profile_name}'",
            failed="Profile update validation failed",
        )

    async def delete_profile(
        self, token: str, profile_id: str, *, name: str = "Delete Profile"
    ) -> TestResult:
        """Delete a profile, expecting a rejection when it is the last one.

        The profiles are counted first. With exactly one profile the server
        must refuse the deletion; a refusal passes and an accepted deletion
        fails with ``UNEXPECTED_DELETE``. With more profiles the deletion
        must succeed.

        Args:
            token: Access token of the profile owner
            profile_id: Profile to delete
            name: Result name

        Returns:
            The scenario result

        """
        result = self.result(name)
        result.note(access_token=token, profile_id=profile_id)
        listing = await self.fetch(
            result,
            "GET",
            "/profiles",
            ProfilesResponse,
            code="DELETE_PROFILE_FAILED",
            failure="Failed to count profiles before deletion",
            headers=bearer(token),
        )
        if isinstance(listing, TestResult):
            return listing
        profile_count = len(listing.items or ())
        log.debug("%d profile(s) before deleting %s", profile_count, profile_id)

        response = await self.send(
            result,
            "DELETE",
            f"/profiles/{profile_id}",
            code="DELETE_PROFILE_FAILED",
            failure="Failed to delete profile",
            headers=bearer(token),
        )
        if isinstance(response, TestResult):
            return response

        deleted = False
        if response.ok:
            try:
                deleted = parse_response(response, SuccessResponse).success is True
            except ParseError as exc:
                return result.failed(
                    "Failed to parse response", code="PARSE_ERROR", cause=exc
                )

        if profile_count == 1:
            if deleted:
                return result.failed(
                    "Deleted the last remaining profile",
                    code="UNEXPECTED_DELETE",
                    error_message="Server accepted deletion of the only profile",
                )
            return result.passed("Correctly prevented deletion of last profile")

        if not response.ok:
            return result.http_failed(
                "Failed to delete profile", code="DELETE_PROFILE_FAILED", response=response
            )
        return result.checked(
            {"success flag set": deleted},
            passed="Successfully deleted profile",
            failed="Profile deletion failed",
        )

    async def first_time_profile_creation(
        self, token: str, *, name: str = "Automatic Profile Creation"
    ) -> TestResult:
        """A brand-new account owns exactly one profile named "My Smartprofile"."""
        result = self.result(name)
        result.note(access_token=token)
        response = await self.fetch(
            result,
            "GET",
            "/profiles",
            ProfilesResponse,
            code="AUTO_PROFILE_FAILED",
            failure="Failed to verify automatic profile",
            headers=bearer(token),
        )
        if isinstance(response, TestResult):
            return response
        profiles = response.items or ()
        if profiles:
            result.note(profile_id=profiles[0].id)
        return result.checked(
            {
                "exactly one profile": len(profiles) == 1,
                f"profile named '{AUTO_PROFILE_NAME}'": any(
                    p.name == AUTO_PROFILE_NAME for p in profiles
                ),
            },
            passed="Automatic profile creation verified",
            failed="Automatic profile creation failed",
        )
