"""Notifications posted by the tracking service"""

import logging

from os_interfaces.base import (
  Importance,
  Notification,
  NotificationChannelSpec,
  NotificationManager,
)
from tracking.config import DEFAULT_ALERT_TITLE
from tracking.models import AlertRequest

logger = logging.getLogger(__name__)

FOREGROUND_NOTIFICATION_ID = 1
# One slot per alert category; repeated alerts of a category replace each other
USER_ALERT_NOTIFICATION_ID = 2
ADMIN_ALERT_NOTIFICATION_ID = 3

ALERT_VIBRATION_PATTERN = (0, 1000, 500, 1000)

EXTRA_VIEW_USER_LOCATION = "view_user_location"
EXTRA_USER_ID = "user_id"

TRACKING_CHANNEL = NotificationChannelSpec(
  channel_id="LocationTrackingServiceChannel",
  name="Location Tracking Service",
  importance=Importance.LOW,
  description="Used for tracking your location in the background",
  show_badge=False,
)

ALERT_CHANNEL = NotificationChannelSpec(
  channel_id="GeofenceAlertChannel",
  name="Geofence Alerts",
  importance=Importance.HIGH,
  description="Alerts when you or your users leave the allowed area",
  vibration_pattern=ALERT_VIBRATION_PATTERN,
)


def build_tracking_notification() -> Notification:
  return Notification(
    notification_id=FOREGROUND_NOTIFICATION_ID,
    channel_id=TRACKING_CHANNEL.channel_id,
    title="Location Tracking Active",
    body="Your location is being tracked in the background",
    priority=Importance.LOW,
    ongoing=True,
  )


def build_geofence_notification(
  alert: AlertRequest, default_title: str = DEFAULT_ALERT_TITLE
) -> Notification:
  """Describe the notification for a geofence alert.

  Admin alerts about a specific user carry tap extras that let the app open
  that user's location; every other alert opens the default view.
  """
  tap_extras = {}
  if alert.targets_user:
    tap_extras = {EXTRA_VIEW_USER_LOCATION: True, EXTRA_USER_ID: alert.user_id}

  return Notification(
    notification_id=(
      ADMIN_ALERT_NOTIFICATION_ID
      if alert.is_admin_notification
      else USER_ALERT_NOTIFICATION_ID
    ),
    channel_id=ALERT_CHANNEL.channel_id,
    title=alert.title if alert.title is not None else default_title,
    body=alert.message,
    big_text=alert.message,
    priority=Importance.HIGH,
    vibration_pattern=ALERT_VIBRATION_PATTERN,
    auto_cancel=True,
    tap_extras=tap_extras,
  )


async def render_geofence_alert(
  alert: AlertRequest,
  manager: NotificationManager,
  default_title: str = DEFAULT_ALERT_TITLE,
) -> Notification:
  """Post the notification for `alert` and return what was posted."""
  manager.ensure_channel(ALERT_CHANNEL)
  notification = build_geofence_notification(alert, default_title)
  logger.debug(
    "Showing geofence notification: %s, isAdmin: %s, userId: %s",
    alert.message,
    alert.is_admin_notification,
    alert.user_id,
  )
  await manager.notify(notification)
  return notification
