"""Tests for location spoofing detection and its notifications"""

import pytest

from conftest import FakeNotificationManager
from tracking.spoofing import (
  LocationSpoofingDetector,
  SpoofingMonitor,
  SpoofingReason,
  distance_m,
  spoofing_message,
)


def moved(fix, *, latitude, seconds):
  return fix.model_copy(
    update={"latitude": latitude, "time": fix.time + seconds * 1000}
  )


class FakeClock:
  def __init__(self, now=0):
    self.now = now

  def __call__(self):
    return self.now


class TestLocationSpoofingDetector:
  def test_distance_of_one_degree_latitude(self, sample_fix):
    north = sample_fix.model_copy(update={"latitude": 38.0})

    assert distance_m(sample_fix, north) == pytest.approx(111_195, rel=1e-3)

  def test_first_clean_fix_passes(self, sample_fix):
    assert not LocationSpoofingDetector().check(sample_fix).detected

  def test_mock_provider_is_flagged(self, sample_fix):
    check = LocationSpoofingDetector().check(sample_fix.model_copy(update={"is_mock": True}))

    assert check.reasons == (SpoofingReason.FROM_MOCK_PROVIDER,)

  def test_realistic_speed_passes(self, sample_fix):
    detector = LocationSpoofingDetector()
    detector.check(sample_fix)

    # ~1.1 km in a minute is ~67 km/h
    check = detector.check(moved(sample_fix, latitude=37.01, seconds=60))

    assert not check.detected

  def test_impossible_speed_is_flagged(self, sample_fix):
    detector = LocationSpoofingDetector()
    detector.check(sample_fix)

    # ~55 km in a minute
    check = detector.check(moved(sample_fix, latitude=37.5, seconds=60))

    assert check.reasons == (SpoofingReason.SPEED_ANOMALY,)

  def test_fixes_too_close_in_time_are_not_compared(self, sample_fix):
    detector = LocationSpoofingDetector()
    detector.check(sample_fix)

    check = detector.check(
      sample_fix.model_copy(update={"latitude": 40.0, "time": sample_fix.time + 500})
    )

    assert not check.detected

  def test_speed_is_measured_from_previous_fix(self, sample_fix):
    detector = LocationSpoofingDetector()
    detector.check(sample_fix)
    jumped = moved(sample_fix, latitude=37.5, seconds=60)
    detector.check(jumped)

    check = detector.check(moved(jumped, latitude=37.5001, seconds=60))

    assert not check.detected


class TestSpoofingMessage:
  def test_lists_reasons(self):
    message = spoofing_message(
      (SpoofingReason.FROM_MOCK_PROVIDER, SpoofingReason.SPEED_ANOMALY)
    )

    assert message == (
      "URGENT: Location spoofing detected! Issues detected: "
      "Fake location provider detected, Impossible movement speed detected"
      " - Please disable all location spoofing immediately!"
    )


class TestSpoofingMonitor:
  @pytest.fixture
  def clock(self):
    return FakeClock(now=1_000_000)

  @pytest.fixture
  def monitor(self, notifications, clock):
    return SpoofingMonitor(notifications, clock=clock)

  @pytest.mark.asyncio
  async def test_detection_posts_high_priority_notification(
    self, monitor, notifications, sample_fix
  ):
    await monitor.inspect(sample_fix.model_copy(update={"is_mock": True}))

    posted = notifications.notified[0]
    assert posted.notification_id == 12345
    assert posted.title == "⚠️ LOCATION SPOOFING DETECTED ⚠️"
    assert posted.vibration_pattern == (0, 500, 200, 500)
    assert notifications.channels[0].channel_id == "location_spoofing_channel"

  @pytest.mark.asyncio
  async def test_notifications_are_throttled(
    self, monitor, notifications, clock, sample_fix
  ):
    mocked = sample_fix.model_copy(update={"is_mock": True})

    await monitor.inspect(mocked)
    clock.now += 5_000
    await monitor.inspect(mocked)
    clock.now += 10_000
    await monitor.inspect(mocked)

    assert [n.notification_id for n in notifications.notified] == [12345, 12346]

  @pytest.mark.asyncio
  async def test_clean_fix_resets_throttle(
    self, monitor, notifications, clock, sample_fix
  ):
    mocked = sample_fix.model_copy(update={"is_mock": True})

    await monitor.inspect(mocked)
    clock.now += 1_000
    await monitor.inspect(sample_fix)
    clock.now += 1_000
    await monitor.inspect(mocked)

    assert len(notifications.notified) == 2

  @pytest.mark.asyncio
  async def test_notification_failure_is_logged(self, clock, sample_fix, caplog):
    notifications = FakeNotificationManager()
    notifications.fail = True
    monitor = SpoofingMonitor(notifications, clock=clock)

    check = await monitor.inspect(sample_fix.model_copy(update={"is_mock": True}))

    assert check.detected
    assert "notification service unavailable" in caplog.text
