"""Restore location tracking after the device boots."""

import logging
from typing import Optional

from os_interfaces.base import ServiceLauncher
from tracking.prefs import TrackingPreferenceStore

logger = logging.getLogger(__name__)

ACTION_BOOT_COMPLETED = "android.intent.action.BOOT_COMPLETED"
ACTION_QUICKBOOT_POWERON = "android.intent.action.QUICKBOOT_POWERON"
BOOT_ACTIONS = frozenset({ACTION_BOOT_COMPLETED, ACTION_QUICKBOOT_POWERON})


class BootRestorer:
  """Restarts the tracking service if tracking was on before shutdown.

  Reads state only; the single side effect is a start request on the launcher.
  """

  def __init__(self, preferences: TrackingPreferenceStore, launcher: ServiceLauncher):
    self.preferences = preferences
    self.launcher = launcher

  def on_receive(self, action: Optional[str]) -> bool:
    """Handle a broadcast action.

    Returns:
      True if a start request was issued
    """
    if action not in BOOT_ACTIONS:
      return False

    logger.debug("Boot completed, checking if location tracking was enabled")
    preference = self.preferences.load()
    if not preference.should_restore:
      logger.debug("Location tracking was not enabled; nothing to restore")
      return False

    logger.info(
      "Restarting location tracking service with callback handle %s",
      preference.callback_handle,
    )
    try:
      self.launcher.start_service(preference.callback_handle)
    except Exception:
      logger.exception("Failed to restart location tracking service")
      return False
    return True
