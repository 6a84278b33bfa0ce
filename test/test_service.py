"""Tests for the location tracking service state machine"""

import pytest

import background_logic
from bridge.channel import MethodCall, ResultKind
from conftest import settle
from os_interfaces.base import Importance, Priority
from tracking.config import TrackingSettings
from tracking.errors import FailureKind, LocationPermissionError, LocationUnavailableError
from tracking.models import LocationFix
from tracking.service import (
  AlertRequested,
  Created,
  Destroyed,
  LocationFixed,
  LocationTrackingService,
  ServiceState,
  StartRequested,
  relay_location,
)

RECORD = "background_logic:record_updates"
ALERTING = "background_logic:alert_on_update"


async def start(service, handle):
  await service.dispatch(Created())
  await service.dispatch(StartRequested(handle))
  await settle()


class TestLifecycle:
  @pytest.mark.asyncio
  async def test_create_posts_foreground_and_subscribes(
    self, service, notifications, provider
  ):
    await service.dispatch(Created())

    assert service.state is ServiceState.TRACKING
    assert service.subscribed
    request = provider.requests[0]
    assert request.interval_ms == 60_000
    assert request.min_interval_ms == 30_000
    assert request.priority is Priority.HIGH_ACCURACY

    foreground = notifications.foreground[0]
    assert foreground.notification_id == 1
    assert foreground.ongoing
    assert notifications.channels[0].channel_id == "LocationTrackingServiceChannel"
    assert notifications.channels[0].importance is Importance.LOW

    await service.dispatch(Destroyed())

  @pytest.mark.asyncio
  async def test_permission_denied_stays_starting(self, service, provider, caplog):
    provider.error = LocationPermissionError("ACCESS_FINE_LOCATION revoked")

    await service.dispatch(Created())

    assert service.state is ServiceState.STARTING
    assert not service.subscribed
    assert service.failures == [FailureKind.PERMISSION_DENIED]
    assert "Lost location permission" in caplog.text

    await service.dispatch(Destroyed())
    assert provider.removed == []
    assert service.state is ServiceState.STOPPED

  @pytest.mark.asyncio
  async def test_unavailable_provider_is_logged(self, service, provider):
    provider.error = LocationUnavailableError("no track")

    await service.dispatch(Created())

    assert service.state is ServiceState.STARTING
    assert service.failures == []
    await service.dispatch(Destroyed())

  @pytest.mark.asyncio
  async def test_repeated_create_keeps_single_worker(self, service, provider, notifications):
    await service.dispatch(Created())
    relay_task = service._relay_task

    await service.dispatch(Created())

    assert service._relay_task is relay_task
    assert len(provider.requests) == 1
    assert len(notifications.foreground) == 1
    await service.dispatch(Destroyed())
    assert relay_task.cancelled()

  @pytest.mark.asyncio
  async def test_destroy_removes_subscription_once(self, service, provider):
    await service.dispatch(Created())
    await service.dispatch(Destroyed())
    await service.dispatch(Destroyed())

    assert provider.removed == [service.on_provider_fix]
    assert service.state is ServiceState.STOPPED

  @pytest.mark.asyncio
  async def test_start_after_destroy_is_ignored(self, service, registry):
    handle = registry.register(RECORD)
    await service.dispatch(Created())
    await service.dispatch(Destroyed())

    await service.dispatch(StartRequested(handle))

    assert service.contexts.context is None


class TestBackgroundContext:
  @pytest.mark.asyncio
  async def test_first_callback_handle_wins(self, service, registry):
    first = registry.register(RECORD)
    second = registry.register(ALERTING)
    await start(service, first)
    context = service.contexts.context

    await service.dispatch(StartRequested(second))

    assert service.contexts.context is context
    assert context.callback_handle == first
    await service.dispatch(Destroyed())

  @pytest.mark.asyncio
  async def test_unknown_handle_leaves_slot_empty_for_retry(self, service, registry):
    await start(service, 12345)

    assert service.contexts.context is None
    assert service.failures == [FailureKind.CALLBACK_NOT_FOUND]

    handle = registry.register(RECORD)
    await service.dispatch(StartRequested(handle))
    assert service.contexts.context.callback_handle == handle
    await service.dispatch(Destroyed())

  @pytest.mark.asyncio
  async def test_start_without_handle_creates_nothing(self, service):
    await start(service, None)

    assert service.contexts.context is None
    assert service.failures == []
    await service.dispatch(Destroyed())

  @pytest.mark.asyncio
  async def test_crashing_entry_point_does_not_crash_service(self, service, registry):
    handle = registry.register("background_logic:crashing")
    await start(service, handle)

    assert service.contexts.context is not None
    assert not service.contexts.context.running
    await service.dispatch(Destroyed())


class TestLocationRelay:
  @pytest.mark.asyncio
  async def test_payload_matches_fix_exactly(self, service, registry):
    fix = LocationFix(
      latitude=48.858370123456789,
      longitude=2.294481234567891,
      accuracy=3.9000000953674316,
      altitude=35.123,
      speed=1.25,
      time=1700000123456,
    )
    await start(service, registry.register(RECORD))

    await service.dispatch(LocationFixed(fix))

    assert background_logic.received == [
      {
        "latitude": fix.latitude,
        "longitude": fix.longitude,
        "accuracy": fix.accuracy,
        "altitude": fix.altitude,
        "speed": fix.speed,
        "time": fix.time,
      }
    ]
    await service.dispatch(Destroyed())

  @pytest.mark.asyncio
  async def test_fix_without_context_is_dropped(self, service, sample_fix, caplog):
    await service.dispatch(LocationFixed(sample_fix))

    assert service.failures == [FailureKind.CONTEXT_UNAVAILABLE]
    assert "not initialized" in caplog.text

  @pytest.mark.asyncio
  async def test_relay_without_channel_reports_failure(self, sample_fix):
    assert await relay_location(None, sample_fix) is FailureKind.CONTEXT_UNAVAILABLE

  @pytest.mark.asyncio
  async def test_provider_fixes_are_relayed_in_order(
    self, service, provider, registry, sample_fix
  ):
    await start(service, registry.register(RECORD))
    later = sample_fix.model_copy(update={"latitude": 37.5, "time": 1700000060000})

    provider.emit(sample_fix)
    provider.emit(later)
    await settle()
    await service.drain()

    assert background_logic.received == [sample_fix.to_payload(), later.to_payload()]
    await service.dispatch(Destroyed())

  @pytest.mark.asyncio
  async def test_mock_fix_is_flagged_but_still_relayed(
    self, service, registry, notifications, sample_fix
  ):
    await start(service, registry.register(RECORD))
    mocked = sample_fix.model_copy(update={"is_mock": True})

    await service.dispatch(LocationFixed(mocked))

    assert background_logic.received == [sample_fix.to_payload()]
    assert "is_mock" not in background_logic.received[0]
    spoofing = notifications.notified[0]
    assert spoofing.channel_id == "location_spoofing_channel"
    assert "Fake location provider detected" in spoofing.body
    assert service.failures == []
    await service.dispatch(Destroyed())

  @pytest.mark.asyncio
  async def test_spoofing_detection_can_be_disabled(
    self, notifications, provider, registry, sample_fix
  ):
    service = LocationTrackingService(
      notification_manager=notifications,
      location_provider=provider,
      callbacks=registry,
      settings=TrackingSettings(detect_spoofing=False),
    )
    await start(service, registry.register(RECORD))

    await service.dispatch(LocationFixed(sample_fix.model_copy(update={"is_mock": True})))

    assert service.spoofing is None
    assert notifications.notified == []
    assert len(background_logic.received) == 1
    await service.dispatch(Destroyed())

  @pytest.mark.asyncio
  async def test_logic_without_handler_does_not_fail_relay(
    self, service, registry, sample_fix
  ):
    await start(service, registry.register("background_logic:crashing"))

    await service.dispatch(LocationFixed(sample_fix))

    assert service.failures == []
    await service.dispatch(Destroyed())


class TestInboundCalls:
  @pytest.mark.asyncio
  async def test_alert_from_logic_posts_notification(
    self, service, registry, notifications, sample_fix
  ):
    await start(service, registry.register(ALERTING))

    await service.dispatch(LocationFixed(sample_fix))

    result = background_logic.alert_results[0]
    assert result.kind is ResultKind.SUCCESS
    assert result.value is True
    alert = notifications.notified[0]
    assert alert.notification_id == 3
    assert alert.tap_extras == {"view_user_location": True, "user_id": "u1"}
    await service.dispatch(Destroyed())

  @pytest.mark.asyncio
  async def test_unknown_method_is_not_implemented(self, service):
    result = await service.dispatch(AlertRequested(MethodCall("unknownMethod", {})))

    assert result.kind is ResultKind.NOT_IMPLEMENTED
    assert service.failures == [FailureKind.NOT_IMPLEMENTED]

  @pytest.mark.asyncio
  async def test_unknown_method_over_channel(self, service, registry):
    await start(service, registry.register(RECORD))
    logic_channel = service.contexts.context.logic_channel

    result = await logic_channel.invoke_method("unknownMethod")

    assert result.kind is ResultKind.NOT_IMPLEMENTED
    await service.dispatch(Destroyed())

  @pytest.mark.asyncio
  async def test_malformed_alert_returns_error(self, service, notifications):
    call = MethodCall("showGeofenceAlert", {"distance": 12.0})

    result = await service.dispatch(AlertRequested(call))

    assert result.kind is ResultKind.ERROR
    assert result.error_code == "NOTIFICATION_ERROR"
    assert "message" in result.error_message
    assert result.error_details["name"] == "INVALID_ALERT"
    assert result.error_details["source"] == "bridge"
    assert notifications.notified == []
    assert service.failures == [FailureKind.NOTIFICATION_ERROR]

  @pytest.mark.asyncio
  async def test_rendering_failure_returns_error(self, service, notifications):
    notifications.fail = True
    call = MethodCall("showGeofenceAlert", {"distance": 12.0, "message": "Out"})

    result = await service.dispatch(AlertRequested(call))

    assert result.kind is ResultKind.ERROR
    assert result.error_code == "NOTIFICATION_ERROR"
    assert "notification service unavailable" in result.error_message
    assert result.error_details["name"] == "ALERT_NOT_POSTED"
    assert result.error_details["source"] == "notifications"
    assert result.error_details["caused_by"] == (
      "RuntimeError: notification service unavailable"
    )

  @pytest.mark.asyncio
  async def test_regular_alert_without_optional_fields(self, service, notifications):
    call = MethodCall(
      "showGeofenceAlert",
      {"distance": 80.0, "message": "You left the area", "is_admin_notification": None},
    )

    result = await service.dispatch(AlertRequested(call))

    assert result.value is True
    posted = notifications.notified[0]
    assert posted.notification_id == 2
    assert posted.title == "⚠️ Geofence Alert"
    assert posted.tap_extras == {}
