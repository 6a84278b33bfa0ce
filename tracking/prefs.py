"""Durable tracking preference: the on/off switch and the callback handle."""

import logging

from os_interfaces.base import PreferenceStorage
from tracking.models import TrackingPreference

logger = logging.getLogger(__name__)

KEY_TRACKING_ENABLED = "tracking_enabled"
KEY_CALLBACK_HANDLE = "callback_handle"


class TrackingPreferenceStore:
  def __init__(self, storage: PreferenceStorage):
    self.storage = storage

  def load(self) -> TrackingPreference:
    """Read the preference; anything missing or unreadable means disabled."""
    try:
      enabled = self.storage.get(KEY_TRACKING_ENABLED, False)
      handle = self.storage.get(KEY_CALLBACK_HANDLE, 0)
    except Exception as e:
      logger.error(f"Failed to read tracking preferences: {e}")
      return TrackingPreference()

    if not isinstance(enabled, bool):
      logger.warning(f"Ignoring non-boolean {KEY_TRACKING_ENABLED}: {enabled!r}")
      enabled = False
    if isinstance(handle, bool) or not isinstance(handle, int):
      logger.warning(f"Ignoring non-integer {KEY_CALLBACK_HANDLE}: {handle!r}")
      handle = 0
    return TrackingPreference(tracking_enabled=enabled, callback_handle=handle)

  def save(self, preference: TrackingPreference) -> None:
    self.storage.set(KEY_TRACKING_ENABLED, preference.tracking_enabled)
    self.storage.set(KEY_CALLBACK_HANDLE, preference.callback_handle)
    logger.debug(f"Saved tracking preference {preference}")
