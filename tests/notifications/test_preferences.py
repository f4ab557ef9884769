"""Tests for courier/notifications/preferences.py"""
from __future__ import annotations

import pytest

from courier.notifications.preferences import (
    PREFERENCES_TABLE,
    NotificationPreferences,
    PreferencesService,
)

PATH = f"/rest/v1/{PREFERENCES_TABLE}"


@pytest.fixture
def service(backend, toaster):
    return PreferencesService(backend, toaster, user_id="user-1")


@pytest.mark.asyncio
class TestPreferencesService:
    async def test_fetch_existing(self, service, recorder):
        recorder.respond("GET", PATH, body=[{"user_id": "user-1", "sms_enabled": True}])
        prefs = await service.fetch()
        assert prefs.sms_enabled is True
        assert prefs.email_enabled is True
        assert recorder.calls("POST", PATH) == []

    async def test_fetch_creates_defaults(self, service, recorder):
        recorder.respond("GET", PATH, body=[])
        recorder.respond("POST", PATH, status=201, body=[{"user_id": "user-1"}])
        prefs = await service.fetch()
        assert prefs == NotificationPreferences()
        inserted = recorder.body(recorder.calls("POST", PATH)[0])
        assert inserted["user_id"] == "user-1"
        assert inserted["marketing"] is False

    async def test_fetch_without_user(self, backend, toaster, recorder):
        service = PreferencesService(backend, toaster, user_id="")
        assert await service.fetch() is None
        assert recorder.requests == []

    async def test_update(self, service, recorder, toaster):
        recorder.respond("GET", PATH, body=[{"user_id": "user-1"}])
        await service.fetch()
        recorder.respond("PATCH", PATH, body=[{"user_id": "user-1", "marketing": True}])

        assert await service.update(marketing=True) is True
        assert service.preferences.marketing is True
        assert toaster.history[-1].title == "Preferences Updated"

    async def test_update_unknown_field(self, service, recorder):
        recorder.respond("GET", PATH, body=[{"user_id": "user-1"}])
        await service.fetch()
        with pytest.raises(ValueError):
            await service.update(carrier_pigeon=True)

    async def test_update_failure(self, service, recorder, toaster):
        recorder.respond("GET", PATH, body=[{"user_id": "user-1"}])
        await service.fetch()
        recorder.respond("PATCH", PATH, status=500, body={})
        assert await service.update(sms_enabled=True) is False
        assert service.preferences.sms_enabled is False
        assert toaster.history[-1].title == "Error"
