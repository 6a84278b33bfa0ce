"""Drives a `LocationTrackingService` through its lifecycle on an event loop."""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Optional

from bridge.callbacks import CallbackRegistry
from os_interfaces.base import LocationProvider, NotificationManager
from tracking.config import TrackingSettings
from tracking.service import Created, Destroyed, LocationTrackingService, StartRequested

logger = logging.getLogger(__name__)


async def run_tracking_service(
  *,
  notification_manager: NotificationManager,
  location_provider: LocationProvider,
  callbacks: CallbackRegistry,
  settings: TrackingSettings,
  callback_handle: Optional[int],
  stop_event: asyncio.Event | None = None,
) -> LocationTrackingService:
  """Create the service, start it with `callback_handle`, run until stopped.

  SIGINT/SIGTERM set the stop event where the loop supports signal handlers.
  """
  stop_event = stop_event or asyncio.Event()
  loop = asyncio.get_running_loop()
  installed = []
  for sig in (signal.SIGINT, signal.SIGTERM):
    try:
      loop.add_signal_handler(sig, stop_event.set)
      installed.append(sig)
    except (NotImplementedError, RuntimeError, ValueError):
      # Not on the main thread, e.g. inside a p4a service
      pass

  service = LocationTrackingService(
    notification_manager=notification_manager,
    location_provider=location_provider,
    callbacks=callbacks,
    settings=settings,
  )
  await service.dispatch(Created())
  await service.dispatch(StartRequested(callback_handle))
  logger.info("Tracking service %s", service.state.value)

  try:
    await stop_event.wait()
  finally:
    await service.dispatch(Destroyed())
    context = service.contexts.clear()
    if context is not None:
      await context.stop()
    for sig in installed:
      loop.remove_signal_handler(sig)
    logger.info("Tracking service stopped")
  return service
