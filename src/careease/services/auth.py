"""
Authentication endpoints and the signed-in session.

AuthSession is the only code that stores or clears the token after a login,
registration or logout; ApiClient clears it on its own when the API rejects it.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from ..core.exceptions import ApiError
from ..core.models import AuthResult, ProfileUpdate, User, to_payload
from ..core.notifications import Notifier
from ..core.preferences import Preferences
from .api import ApiClient

logger = logging.getLogger(__name__)


class AuthService:
    """Authentication endpoints."""

    def __init__(self, api: ApiClient):
        self.api = api

    async def register(self, user_data: Dict[str, Any]) -> AuthResult:
        data = await self.api.post("/auth/register", user_data)
        return AuthResult.model_validate(data)

    async def login(self, email: str, password: str) -> AuthResult:
        data = await self.api.post("/auth/login", {"email": email, "password": password})
        return AuthResult.model_validate(data)

    async def logout(self) -> None:
        await self.api.post("/auth/logout")

    async def get_profile(self) -> User:
        data = await self.api.get("/auth/profile")
        return User.model_validate(data["user"])

    async def update_profile(self, update: ProfileUpdate) -> User:
        data = await self.api.put("/auth/profile", to_payload(update))
        return User.model_validate(data["user"])


class AuthSession:
    """The signed-in user, backed by the token stored in Preferences."""

    def __init__(self, service: AuthService, preferences: Preferences, notifier: Optional[Notifier] = None):
        self.service = service
        self.preferences = preferences
        self.notifier = notifier
        self.user: Optional[User] = None

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    async def restore(self) -> Optional[User]:
        """Load the profile for a stored token; an invalid token is cleared."""
        if not self.preferences.token:
            return None
        try:
            self.user = await self.service.get_profile()
        except ApiError as e:
            logger.info("Stored token rejected: %s", e)
            self.preferences.clear_token()
            self.user = None
        return self.user

    async def login(self, email: str, password: str) -> User:
        result = await self._authenticate(self.service.login(email, password), "Login failed")
        self._notify_success(f"Welcome back, {result.user.first_name}!")
        return result.user

    async def register(self, user_data: Dict[str, Any]) -> User:
        result = await self._authenticate(self.service.register(user_data), "Registration failed")
        self._notify_success(f"Welcome to CareEase, {result.user.first_name}!")
        return result.user

    async def _authenticate(self, call, failure_message: str) -> AuthResult:
        try:
            result = await call
        except ApiError as e:
            if self.notifier is not None:
                self.notifier.error(e.message or failure_message)
            raise
        self.preferences.token = result.token
        self.user = result.user
        return result

    async def logout(self) -> None:
        """Sign out. Local state is cleared even if the API call fails."""
        try:
            await self.service.logout()
        except ApiError as e:
            logger.warning("Logout request failed: %s", e)
        finally:
            self.preferences.clear_token()
            self.user = None
            self._notify_success("Logged out successfully")

    async def update_profile(self, update: ProfileUpdate) -> User:
        self.user = await self.service.update_profile(update)
        self._notify_success("Profile updated successfully")
        return self.user

    def has_role(self, role: str) -> bool:
        return self.user is not None and self.user.role == role

    def is_admin(self) -> bool:
        return self.has_role("admin")

    def _notify_success(self, message: str) -> None:
        if self.notifier is not None:
            self.notifier.success(message)
