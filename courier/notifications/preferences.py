"""
Per-user notification preferences, stored in `notification_preferences`.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel

from courier.core.errors import BackendError
from courier.remote.backend import BackendClient
from courier.ui.toast import Toaster

logger = logging.getLogger(__name__)

PREFERENCES_TABLE = "notification_preferences"


class NotificationPreferences(BaseModel):
    email_enabled: bool = True
    sms_enabled: bool = False
    push_enabled: bool = True
    in_app_enabled: bool = True
    delivery_updates: bool = True
    donation_updates: bool = True
    marketing: bool = False


class PreferencesService:
    """
    Usage:
        prefs = PreferencesService(backend, toaster, user_id=uid)
        current = await prefs.fetch()
        await prefs.update(sms_enabled=True)
    """

    def __init__(self, backend: BackendClient, toaster: Toaster, *, user_id: str) -> None:
        self._backend = backend
        self._toaster = toaster
        self._user_id = user_id
        self._preferences: NotificationPreferences | None = None

    @property
    def preferences(self) -> NotificationPreferences | None:
        return self._preferences

    async def fetch(self) -> NotificationPreferences | None:
        """Load the user's row, creating one with defaults if missing."""
        if not self._user_id:
            return None
        try:
            row = await self._backend.select_one(PREFERENCES_TABLE, user_id=self._user_id)
        except BackendError as e:
            logger.error(f"Error fetching notification preferences: {e}")
            return None
        if row is not None:
            self._preferences = NotificationPreferences.model_validate(row)
            return self._preferences
        return await self._create_defaults()

    async def update(self, **changes: Any) -> bool:
        if not self._user_id or self._preferences is None:
            return False
        unknown = set(changes) - set(NotificationPreferences.model_fields)
        if unknown:
            raise ValueError(f"Unknown preference(s): {', '.join(sorted(unknown))}")
        try:
            row = await self._backend.update(PREFERENCES_TABLE, changes, user_id=self._user_id)
        except BackendError as e:
            logger.error(f"Error updating preferences: {e}")
            self._toaster.show("Error", "Failed to update preferences", variant="destructive")
            return False

        merged = {**self._preferences.model_dump(), **changes, **row}
        self._preferences = NotificationPreferences.model_validate(merged)
        self._toaster.show("Preferences Updated", "Your notification preferences have been saved")
        return True

    async def _create_defaults(self) -> NotificationPreferences | None:
        defaults = NotificationPreferences()
        try:
            row = await self._backend.insert(
                PREFERENCES_TABLE, {"user_id": self._user_id, **defaults.model_dump()}
            )
        except BackendError as e:
            logger.error(f"Error creating default preferences: {e}")
            return None
        self._preferences = NotificationPreferences.model_validate(row or defaults.model_dump())
        return self._preferences
