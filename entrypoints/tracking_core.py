"""Platform-agnostic bootstrap for the tracking programs.

The platform-specific entrypoints (Linux/Android) build an `OSImplementations`
bundle whose factories take only the arguments used here, and call into
this module.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from bridge.callbacks import CallbackRegistry
from os_interfaces.base import OSImplementations
from tracking.boot import BootRestorer
from tracking.config import DEBUG, PREFS_NAMESPACE, TrackingSettings
from tracking.controller import TrackingController
from tracking.prefs import TrackingPreferenceStore
from tracking.runner import run_tracking_service

logging.basicConfig(
  level=logging.DEBUG if DEBUG else logging.INFO,
  format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

CALLBACK_NAMESPACE = "CallbackRegistry"


def callback_registry(os_impl: OSImplementations) -> CallbackRegistry:
  return CallbackRegistry(os_impl.preference_storage(CALLBACK_NAMESPACE))


def preference_store(os_impl: OSImplementations) -> TrackingPreferenceStore:
  return TrackingPreferenceStore(os_impl.preference_storage(PREFS_NAMESPACE))


def tracking_controller(os_impl: OSImplementations) -> TrackingController:
  return TrackingController(preference_store(os_impl), os_impl.service_launcher())


def run_tracker(
  *,
  os_impl: OSImplementations,
  settings: TrackingSettings,
  callback_handle: Optional[int],
) -> None:
  logger.info("Starting location tracking service (handle %s)", callback_handle)
  asyncio.run(
    run_tracking_service(
      notification_manager=os_impl.notification_manager(),
      location_provider=os_impl.location_provider(),
      callbacks=callback_registry(os_impl),
      settings=settings,
      callback_handle=callback_handle,
    )
  )


def run_boot(*, os_impl: OSImplementations, action: Optional[str]) -> bool:
  restorer = BootRestorer(preference_store(os_impl), os_impl.service_launcher())
  return restorer.on_receive(action)


def parse_handle(value: Optional[str]) -> Optional[int]:
  """Callback handle from a CLI or service argument; blank means none."""
  if value is None or not value.strip():
    return None
  try:
    return int(value)
  except ValueError:
    logger.error("Ignoring invalid callback handle %r", value)
    return None
