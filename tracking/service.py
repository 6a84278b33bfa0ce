"""Background location reporting service.

The host adapts its lifecycle callbacks into events and feeds them to
`LocationTrackingService.dispatch`:

  Created              -> foreground notification + location subscription
  StartRequested(id)   -> background context for the application logic
  LocationFixed(fix)   -> spoofing check, then `onLocationUpdate` on the channel
  AlertRequested(call) -> inbound channel call, e.g. `showGeofenceAlert`
  Destroyed            -> location subscription removed

Failures never escape `dispatch`; each one is logged and recorded in
`failures` as a `FailureKind`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from pydantic import ValidationError

from bridge.callbacks import CallbackRegistry
from bridge.channel import MethodCall, MethodChannel, MethodResult, create_messenger_pair
from bridge.context import BackgroundContext, BackgroundContextHolder
from os_interfaces.base import LocationProvider, NotificationManager
from tracking.alerts import TRACKING_CHANNEL, build_tracking_notification, render_geofence_alert
from tracking.config import TrackingSettings
from tracking.errors import FailureKind, LocationPermissionError, TrackingError
from tracking.models import AlertRequest, LocationFix
from tracking.spoofing import SpoofingMonitor

logger = logging.getLogger(__name__)

METHOD_LOCATION_UPDATE = "onLocationUpdate"
METHOD_SHOW_GEOFENCE_ALERT = "showGeofenceAlert"
NOTIFICATION_ERROR = FailureKind.NOTIFICATION_ERROR.value


class ServiceState(str, Enum):
  STARTING = "starting"
  TRACKING = "tracking"
  STOPPED = "stopped"


@dataclass(frozen=True)
class Created:
  pass


@dataclass(frozen=True)
class StartRequested:
  callback_handle: Optional[int]


@dataclass(frozen=True)
class LocationFixed:
  fix: LocationFix


@dataclass(frozen=True)
class AlertRequested:
  call: MethodCall


@dataclass(frozen=True)
class Destroyed:
  pass


ServiceEvent = Union[Created, StartRequested, LocationFixed, AlertRequested, Destroyed]


async def relay_location(
  channel: Optional[MethodChannel], fix: LocationFix
) -> Optional[FailureKind]:
  """Send one fix to the application logic. Returns the failure, if any."""
  if channel is None:
    logger.error("Background channel not initialized; dropping fix at %s", fix.time)
    return FailureKind.CONTEXT_UNAVAILABLE

  logger.debug("Location update: %s, %s", fix.latitude, fix.longitude)
  try:
    await channel.invoke_method(METHOD_LOCATION_UPDATE, fix.to_payload())
  except Exception as e:
    logger.error(f"Error sending location to background context: {e}")
    return FailureKind.RELAY_FAILED
  return None


async def handle_alert_call(
  call: MethodCall,
  manager: NotificationManager,
  default_title: str,
) -> MethodResult:
  """Answer an inbound channel call from the application logic."""
  if call.method != METHOD_SHOW_GEOFENCE_ALERT:
    return MethodResult.not_implemented()

  try:
    alert = AlertRequest.model_validate(call.arguments or {})
  except ValidationError as e:
    error = TrackingError.from_exception(
      e, "INVALID_ALERT", "bridge", context="Invalid geofence alert request"
    )
    logger.warning(error.description)
    return _alert_error(error)

  try:
    await render_geofence_alert(alert, manager, default_title)
  except Exception as e:
    error = TrackingError.from_exception(
      e, "ALERT_NOT_POSTED", "notifications", context="Error showing geofence notification"
    )
    logger.error(error.description)
    return _alert_error(error)
  return MethodResult.success(True)


def _alert_error(error: TrackingError) -> MethodResult:
  return MethodResult.error(
    NOTIFICATION_ERROR, error.description, error.to_response().model_dump()
  )


class LocationTrackingService:
  def __init__(
    self,
    notification_manager: NotificationManager,
    location_provider: LocationProvider,
    callbacks: CallbackRegistry,
    settings: TrackingSettings | None = None,
    contexts: BackgroundContextHolder | None = None,
    spoofing: SpoofingMonitor | None = None,
  ):
    self.notification_manager = notification_manager
    self.location_provider = location_provider
    self.callbacks = callbacks
    self.settings = settings or TrackingSettings()
    self.contexts = contexts or BackgroundContextHolder()
    if spoofing is None and self.settings.detect_spoofing:
      spoofing = SpoofingMonitor(notification_manager)
    self.spoofing = spoofing

    self.state = ServiceState.STARTING
    self.subscribed = False
    self.failures: list[FailureKind] = []

    self._loop: asyncio.AbstractEventLoop | None = None
    self._fixes: asyncio.Queue[LocationFix] | None = None
    self._relay_task: asyncio.Task | None = None

  # ---- event dispatch ----
  async def dispatch(self, event: ServiceEvent) -> Optional[MethodResult]:
    match event:
      case Created():
        await self._on_create()
      case StartRequested(callback_handle=handle):
        self._on_start_command(handle)
      case LocationFixed(fix=fix):
        await self._on_location(fix)
      case AlertRequested(call=call):
        return await self._on_alert_call(call)
      case Destroyed():
        await self._on_destroy()
    return None

  @property
  def channel(self) -> Optional[MethodChannel]:
    context = self.contexts.context
    return context.host_channel if context is not None else None

  def _record(self, failure: FailureKind) -> None:
    self.failures.append(failure)

  # ---- lifecycle ----
  async def _on_create(self) -> None:
    if self._relay_task is not None or self.state is ServiceState.STOPPED:
      logger.warning("Service already created; ignoring")
      return
    logger.debug("LocationTrackingService created")
    self._loop = asyncio.get_running_loop()
    self._fixes = asyncio.Queue()
    self._relay_task = self._loop.create_task(self._relay_worker(), name="location-relay")

    try:
      self.notification_manager.ensure_channel(TRACKING_CHANNEL)
      await self.notification_manager.start_foreground(build_tracking_notification())
    except Exception as e:
      logger.error(f"Failed to post foreground notification: {e}")

    try:
      self.location_provider.request_updates(
        self.settings.location_request(), self.on_provider_fix
      )
    except LocationPermissionError as e:
      logger.error(f"Lost location permission: {e}")
      self._record(FailureKind.PERMISSION_DENIED)
      return
    except TrackingError as e:
      logger.error(f"Location updates unavailable: {e}")
      return

    self.subscribed = True
    self.state = ServiceState.TRACKING
    logger.info("Location updates requested every %sms", self.settings.interval_ms)

  def _on_start_command(self, callback_handle: Optional[int]) -> None:
    if self.state is ServiceState.STOPPED:
      logger.warning("Start command after destroy; ignoring")
      return
    if not callback_handle:
      logger.debug("Start command without callback handle")
      return
    logger.debug("Received callback handle: %s", callback_handle)
    self.contexts.get_or_create(callback_handle, self._create_context)

  def _create_context(self, callback_handle: int) -> Optional[BackgroundContext]:
    info = self.callbacks.lookup(callback_handle)
    if info is None:
      logger.error("Callback handle %s not found", callback_handle)
      self._record(FailureKind.CALLBACK_NOT_FOUND)
      return None

    host_messenger, logic_messenger = create_messenger_pair()
    host_channel = MethodChannel(self.settings.channel_name, host_messenger)
    logic_channel = MethodChannel(self.settings.channel_name, logic_messenger)
    host_channel.set_method_call_handler(self._on_alert_call)

    context = BackgroundContext(info, host_channel, logic_channel)
    try:
      context.start()
    except (ImportError, AttributeError) as e:
      logger.error(f"Cannot start background entry point {info.path}: {e}")
      self._record(FailureKind.CALLBACK_NOT_FOUND)
      return None
    return context

  async def _on_destroy(self) -> None:
    logger.debug("LocationTrackingService destroyed")
    if self.subscribed:
      try:
        self.location_provider.remove_updates(self.on_provider_fix)
      except Exception as e:
        logger.error(f"Error stopping location updates: {e}")
      self.subscribed = False

    if self._relay_task is not None:
      self._relay_task.cancel()
      try:
        await self._relay_task
      except asyncio.CancelledError:
        pass
      self._relay_task = None
    self.state = ServiceState.STOPPED

  # ---- location relay ----
  def on_provider_fix(self, fix: LocationFix) -> None:
    """Location provider callback; safe to call from any thread."""
    if self._loop is None or self._fixes is None or self._loop.is_closed():
      logger.warning("Location fix before service creation; dropping")
      return
    self._loop.call_soon_threadsafe(self._fixes.put_nowait, fix)

  async def _relay_worker(self) -> None:
    assert self._fixes is not None
    while True:
      fix = await self._fixes.get()
      try:
        await self._on_location(fix)
      finally:
        self._fixes.task_done()

  async def drain(self) -> None:
    """Wait until every queued provider fix has been relayed."""
    if self._fixes is not None:
      await self._fixes.join()

  async def _on_location(self, fix: LocationFix) -> None:
    if self.spoofing is not None:
      await self.spoofing.inspect(fix)
    failure = await relay_location(self.channel, fix)
    if failure is not None:
      self._record(failure)

  # ---- inbound calls ----
  async def _on_alert_call(self, call: MethodCall) -> MethodResult:
    result = await handle_alert_call(
      call, self.notification_manager, self.settings.default_alert_title
    )
    if result.error_code == NOTIFICATION_ERROR:
      self._record(FailureKind.NOTIFICATION_ERROR)
    elif not result.is_success:
      logger.warning("Unhandled background call %s", call.method)
      self._record(FailureKind.NOT_IMPLEMENTED)
    return result
