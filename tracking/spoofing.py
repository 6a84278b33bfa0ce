"""
Location spoofing detection

Two checks run on every fix: the provider's mock flag, and the implied speed
since the previous fix. A detection posts a high-priority notification, at
most once per throttle window while spoofing persists.
"""

import logging
import math
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from os_interfaces.base import (
  Importance,
  Notification,
  NotificationChannelSpec,
  NotificationManager,
)
from tracking.models import LocationFix

logger = logging.getLogger(__name__)

MAX_REALISTIC_SPEED_KMH = 300.0
# Shorter gaps between fixes give meaningless speeds
MIN_SPEED_WINDOW_MS = 1000
MIN_NOTIFICATION_INTERVAL_MS = 10_000

EARTH_RADIUS_M = 6_371_000

SPOOFING_NOTIFICATION_BASE_ID = 12345
SPOOFING_NOTIFICATION_SLOTS = 100
SPOOFING_TITLE = "⚠️ LOCATION SPOOFING DETECTED ⚠️"
SPOOFING_VIBRATION_PATTERN = (0, 500, 200, 500)

SPOOFING_CHANNEL = NotificationChannelSpec(
  channel_id="location_spoofing_channel",
  name="Location Spoofing Alerts",
  importance=Importance.HIGH,
  description="Urgent notifications for potential location spoofing detection",
  vibration_pattern=SPOOFING_VIBRATION_PATTERN,
)


class SpoofingReason(str, Enum):
  FROM_MOCK_PROVIDER = "FROM_MOCK_PROVIDER"
  SPEED_ANOMALY = "SPEED_ANOMALY"


REASON_TEXT = {
  SpoofingReason.FROM_MOCK_PROVIDER: "Fake location provider detected",
  SpoofingReason.SPEED_ANOMALY: "Impossible movement speed detected",
}


@dataclass(frozen=True)
class SpoofingCheck:
  reasons: tuple[SpoofingReason, ...] = ()

  @property
  def detected(self) -> bool:
    return bool(self.reasons)


def distance_m(a: LocationFix, b: LocationFix) -> float:
  """Great-circle distance between two fixes in meters (haversine)"""
  lat1 = math.radians(a.latitude)
  lat2 = math.radians(b.latitude)
  delta_lat = math.radians(b.latitude - a.latitude)
  delta_lon = math.radians(b.longitude - a.longitude)

  h = (
    math.sin(delta_lat / 2) ** 2
    + math.cos(lat1) * math.cos(lat2) * math.sin(delta_lon / 2) ** 2
  )
  return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


class LocationSpoofingDetector:
  """Stateful checker; remembers the previous fix for the speed check."""

  def __init__(
    self,
    max_speed_kmh: float = MAX_REALISTIC_SPEED_KMH,
    min_window_ms: int = MIN_SPEED_WINDOW_MS,
  ):
    self.max_speed_kmh = max_speed_kmh
    self.min_window_ms = min_window_ms
    self._last: Optional[LocationFix] = None

  def speed_kmh(self, previous: LocationFix, current: LocationFix) -> Optional[float]:
    elapsed_ms = current.time - previous.time
    if elapsed_ms < self.min_window_ms:
      return None
    return distance_m(previous, current) / (elapsed_ms / 1000) * 3.6

  def check(self, fix: LocationFix) -> SpoofingCheck:
    reasons = []
    if fix.is_mock:
      logger.warning("Location is from mock provider")
      reasons.append(SpoofingReason.FROM_MOCK_PROVIDER)

    if self._last is not None:
      speed = self.speed_kmh(self._last, fix)
      if speed is not None:
        logger.debug("Calculated speed: %.1f km/h", speed)
        if speed > self.max_speed_kmh:
          logger.warning(f"Speed anomaly detected: {speed:.0f} km/h")
          reasons.append(SpoofingReason.SPEED_ANOMALY)

    self._last = fix
    return SpoofingCheck(tuple(reasons))


def spoofing_message(reasons: tuple[SpoofingReason, ...]) -> str:
  base = "URGENT: Location spoofing detected! "
  if not reasons:
    return base + "Please disable any mock location features immediately."
  details = ", ".join(REASON_TEXT[reason] for reason in reasons)
  return f"{base}Issues detected: {details} - Please disable all location spoofing immediately!"


def build_spoofing_notification(
  reasons: tuple[SpoofingReason, ...], notification_id: int
) -> Notification:
  message = spoofing_message(reasons)
  return Notification(
    notification_id=notification_id,
    channel_id=SPOOFING_CHANNEL.channel_id,
    title=SPOOFING_TITLE,
    body=message,
    big_text=message,
    priority=Importance.HIGH,
    vibration_pattern=SPOOFING_VIBRATION_PATTERN,
    auto_cancel=True,
  )


def _now_ms() -> int:
  return int(time.time() * 1000)


class SpoofingMonitor:
  """Runs the detector on each fix and throttles the resulting notifications.

  While spoofing persists, at most one notification is posted per
  `min_interval_ms`. A clean fix resets the throttle, so the next detection
  is reported immediately. Notifications rotate through a fixed block of ids.
  """

  def __init__(
    self,
    notification_manager: NotificationManager,
    detector: Optional[LocationSpoofingDetector] = None,
    min_interval_ms: int = MIN_NOTIFICATION_INTERVAL_MS,
    clock: Callable[[], int] = _now_ms,
  ):
    self.notification_manager = notification_manager
    self.detector = detector or LocationSpoofingDetector()
    self.min_interval_ms = min_interval_ms
    self.clock = clock
    self._last_notified_ms: Optional[int] = None
    self._counter = 0

  def _next_notification_id(self) -> int:
    notification_id = SPOOFING_NOTIFICATION_BASE_ID + (
      self._counter % SPOOFING_NOTIFICATION_SLOTS
    )
    self._counter += 1
    return notification_id

  async def inspect(self, fix: LocationFix) -> SpoofingCheck:
    check = self.detector.check(fix)
    if not check.detected:
      self._last_notified_ms = None
      return check

    reasons = [reason.value for reason in check.reasons]
    logger.warning("Potential location spoofing detected: %s", reasons)
    now = self.clock()
    if (
      self._last_notified_ms is not None
      and now - self._last_notified_ms <= self.min_interval_ms
    ):
      logger.debug(
        "Waiting to show next spoofing notification. Time since last: %ss",
        (now - self._last_notified_ms) // 1000,
      )
      return check

    self._last_notified_ms = now
    try:
      self.notification_manager.ensure_channel(SPOOFING_CHANNEL)
      await self.notification_manager.notify(
        build_spoofing_notification(check.reasons, self._next_notification_id())
      )
    except Exception as e:
      logger.error(f"Error showing spoofing notification: {e}")
    return check
