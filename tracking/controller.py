"""User-facing switch for background tracking and alert tap routing."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from os_interfaces.base import ServiceLauncher
from tracking.alerts import EXTRA_USER_ID, EXTRA_VIEW_USER_LOCATION
from tracking.models import TrackingPreference
from tracking.prefs import TrackingPreferenceStore

logger = logging.getLogger(__name__)


class TrackingController:
  """Persists the tracking switch and starts or stops the service.

  Both operations report success as a boolean and never raise.
  """

  def __init__(self, preferences: TrackingPreferenceStore, launcher: ServiceLauncher):
    self.preferences = preferences
    self.launcher = launcher

  def start_tracking(self, callback_handle: Optional[int]) -> bool:
    logger.debug("Starting location service with callback handle: %s", callback_handle)
    try:
      self.preferences.save(
        TrackingPreference(tracking_enabled=True, callback_handle=callback_handle or 0)
      )
      self.launcher.start_service(callback_handle)
    except Exception as e:
      logger.error(f"Error starting location service: {e}")
      return False
    return True

  def stop_tracking(self) -> bool:
    logger.debug("Stopping location service")
    try:
      current = self.preferences.load()
      self.preferences.save(
        TrackingPreference(tracking_enabled=False, callback_handle=current.callback_handle)
      )
      self.launcher.stop_service()
    except Exception as e:
      logger.error(f"Error stopping location service: {e}")
      return False
    return True

  def status(self) -> TrackingPreference:
    return self.preferences.load()


Navigator = Callable[[str], None]


class TapRouter:
  """Turns alert tap extras into a per-user navigation.

  When no navigator is attached yet (cold start), the latest request is kept
  and delivered on `attach`.
  """

  def __init__(self, navigator: Optional[Navigator] = None):
    self.navigator = navigator
    self.pending_user_id: Optional[str] = None

  def handle_extras(self, extras: dict[str, Any]) -> None:
    if not extras.get(EXTRA_VIEW_USER_LOCATION):
      return
    user_id = extras.get(EXTRA_USER_ID)
    if user_id is None:
      return

    logger.debug("Received request to view user location: %s", user_id)
    if self.navigator is None:
      logger.debug("Navigator not ready, keeping request for %s", user_id)
      self.pending_user_id = user_id
      return
    self._navigate(user_id)

  def attach(self, navigator: Navigator) -> None:
    self.navigator = navigator
    if self.pending_user_id is not None:
      user_id, self.pending_user_id = self.pending_user_id, None
      logger.debug("Processing pending navigation request for user: %s", user_id)
      self._navigate(user_id)

  def _navigate(self, user_id: str) -> None:
    try:
      self.navigator(user_id)  # type: ignore[misc]
    except Exception as e:
      logger.error(f"Error sending navigation command: {e}")
