"""Linux-specific implementations of OS interfaces"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Optional

import yaml
from desktop_notifier import DesktopNotifier, Urgency
from platformdirs import user_config_dir
from pydantic import ValidationError

from tracking.errors import LocationUnavailableError
from tracking.models import LocationFix
from .base import (
  Importance,
  LocationCallback,
  LocationProvider,
  LocationRequest,
  Notification,
  NotificationChannelSpec,
  NotificationManager,
  PreferenceStorage,
  TapHandler,
)

logger = logging.getLogger(__name__)

_URGENCY = {
  Importance.LOW: Urgency.Low,
  Importance.DEFAULT: Urgency.Normal,
  Importance.HIGH: Urgency.Critical,
}


class LinuxNotificationManager(NotificationManager):
  """Linux notification manager using desktop-notifier

  Desktop notifications have no channels; notification ids are emulated by
  clearing whatever was last shown under the same id.
  """

  def __init__(self, app_name: str, on_tap: Optional[TapHandler] = None):
    self.notifier = DesktopNotifier(app_name=app_name)
    self.on_tap = on_tap
    self.channels: dict[str, NotificationChannelSpec] = {}
    self._shown: dict[int, Any] = {}

  def ensure_channel(self, channel: NotificationChannelSpec) -> None:
    self.channels.setdefault(channel.channel_id, channel)

  async def notify(self, notification: Notification) -> None:
    previous = self._shown.pop(notification.notification_id, None)
    if previous is not None:
      try:
        await self.notifier.clear(previous)
      except Exception as e:
        logger.warning(f"Could not clear notification {previous}: {e}")

    on_clicked = None
    if self.on_tap is not None:
      on_tap, extras = self.on_tap, dict(notification.tap_extras)

      def on_clicked():
        on_tap(extras)

    try:
      sent = await self.notifier.send(
        title=notification.title,
        message=notification.big_text or notification.body,
        urgency=_URGENCY[notification.priority],
        on_clicked=on_clicked,
      )
    except Exception as e:
      logger.error(f"Failed to send notification: {e}")
      raise
    self._shown[notification.notification_id] = getattr(sent, "identifier", sent)
    logger.info(f"Notification sent: {notification.title}")

  async def start_foreground(self, notification: Notification) -> None:
    # No foreground privilege on the desktop; the status notification is optional
    try:
      await self.notify(notification)
    except Exception as e:
      logger.warning(f"Tracking status notification not shown: {e}")


def _now_ms() -> int:
  return int(time.time() * 1000)


class ReplayLocationProvider(LocationProvider):
  """Replays fixes from a YAML track file at the requested interval.

  The file holds a list of mappings with latitude, longitude, accuracy,
  altitude, speed and optionally time (epoch ms). Fixes without a time are
  stamped when emitted.
  """

  def __init__(self, track_path: Path | str | None, loop_track: bool = False):
    self.track_path = Path(track_path) if track_path else None
    self.loop_track = loop_track
    self._tasks: dict[int, asyncio.Task] = {}

  def _load_track(self) -> list[dict]:
    if self.track_path is None or not self.track_path.exists():
      raise LocationUnavailableError(f"No replay track at {self.track_path}")
    with open(self.track_path, "r") as f:
      points = yaml.safe_load(f) or []
    if not isinstance(points, list):
      raise LocationUnavailableError(f"Replay track {self.track_path} is not a list")
    return points

  def request_updates(
    self, request: LocationRequest, callback: LocationCallback
  ) -> None:
    points = self._load_track()
    self.remove_updates(callback)
    task = asyncio.get_running_loop().create_task(
      self._replay(points, request.interval_ms / 1000, callback),
      name="replay-location",
    )
    self._tasks[id(callback)] = task
    logger.info(f"Replaying {len(points)} fixes from {self.track_path}")

  def remove_updates(self, callback: LocationCallback) -> None:
    task = self._tasks.pop(id(callback), None)
    if task is not None:
      task.cancel()

  async def _replay(
    self, points: list[dict], interval_s: float, callback: LocationCallback
  ) -> None:
    while True:
      for point in points:
        try:
          fix = LocationFix(**{"time": _now_ms(), **point})
        except (ValidationError, TypeError) as e:
          logger.warning(f"Skipping malformed track point {point!r}: {e}")
          continue
        try:
          callback(fix)
        except Exception:
          logger.exception("Location callback failed")
        await asyncio.sleep(interval_s)
      if not self.loop_track:
        return


class LinuxPreferenceStorage(PreferenceStorage):
  """Linux preference storage using a YAML file in the user config directory"""

  def __init__(self, app_name: str, namespace: str):
    self.config_dir = Path(user_config_dir(app_name, ensure_exists=True))
    self.config_file = self.config_dir / f"{namespace}.yaml"
    self._config: dict = {}
    self._load_config()

  def _load_config(self) -> None:
    if self.config_file.exists():
      try:
        with open(self.config_file, "r") as f:
          loaded = yaml.safe_load(f) or {}
        self._config = loaded if isinstance(loaded, dict) else {}
        logger.debug(f"Loaded preferences from {self.config_file}")
      except Exception as e:
        logger.error(f"Failed to load preferences: {e}")
        self._config = {}
    else:
      self._config = {}

  def _save(self) -> None:
    try:
      self.config_dir.mkdir(parents=True, exist_ok=True)
      with open(self.config_file, "w") as f:
        yaml.safe_dump(self._config, f, default_flow_style=False)
      logger.debug(f"Saved preferences to {self.config_file}")
    except Exception as e:
      logger.error(f"Failed to save preferences: {e}")

  def get(self, key: str, default: Any = None) -> Any:
    return self._config.get(key, default)

  def set(self, key: str, value: Any) -> None:
    self._config[key] = value
    self._save()
