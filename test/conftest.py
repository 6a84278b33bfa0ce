"""Shared fakes for the host-facing OS interfaces"""

import asyncio
from typing import Any, Optional

import pytest

import background_logic
from bridge.callbacks import CallbackRegistry
from bridge.context import BackgroundContextHolder
from os_interfaces.base import (
  LocationProvider,
  LocationRequest,
  Notification,
  NotificationChannelSpec,
  NotificationManager,
  PreferenceStorage,
  ServiceLauncher,
)
from tracking.models import LocationFix
from tracking.prefs import TrackingPreferenceStore
from tracking.service import LocationTrackingService


class MemoryStorage(PreferenceStorage):
  def __init__(self, initial: Optional[dict] = None):
    self.values = dict(initial or {})

  def get(self, key: str, default: Any = None) -> Any:
    return self.values.get(key, default)

  def set(self, key: str, value: Any) -> None:
    self.values[key] = value


class FakeNotificationManager(NotificationManager):
  def __init__(self):
    self.channels: list[NotificationChannelSpec] = []
    self.notified: list[Notification] = []
    self.foreground: list[Notification] = []
    self.fail = False

  def ensure_channel(self, channel: NotificationChannelSpec) -> None:
    self.channels.append(channel)

  async def notify(self, notification: Notification) -> None:
    if self.fail:
      raise RuntimeError("notification service unavailable")
    self.notified.append(notification)

  async def start_foreground(self, notification: Notification) -> None:
    self.foreground.append(notification)


class FakeLocationProvider(LocationProvider):
  def __init__(self):
    self.requests: list[LocationRequest] = []
    self.callbacks: list = []
    self.removed: list = []
    self.error: Optional[Exception] = None

  def request_updates(self, request, callback) -> None:
    if self.error is not None:
      raise self.error
    self.requests.append(request)
    self.callbacks.append(callback)

  def remove_updates(self, callback) -> None:
    self.removed.append(callback)

  def emit(self, fix: LocationFix) -> None:
    for callback in self.callbacks:
      callback(fix)


class FakeLauncher(ServiceLauncher):
  def __init__(self):
    self.starts: list[Optional[int]] = []
    self.stops = 0
    self.fail = False

  def start_service(self, callback_handle: Optional[int]) -> None:
    self.starts.append(callback_handle)
    if self.fail:
      raise RuntimeError("cannot start service")

  def stop_service(self) -> None:
    self.stops += 1
    if self.fail:
      raise RuntimeError("cannot stop service")


async def settle() -> None:
  """Let freshly scheduled tasks (entry points, relay worker) run."""
  for _ in range(3):
    await asyncio.sleep(0)


@pytest.fixture(autouse=True)
def reset_background_logic():
  background_logic.reset()
  yield
  background_logic.reset()


@pytest.fixture
def storage():
  return MemoryStorage()


@pytest.fixture
def prefs(storage):
  return TrackingPreferenceStore(storage)


@pytest.fixture
def registry():
  return CallbackRegistry(MemoryStorage())


@pytest.fixture
def notifications():
  return FakeNotificationManager()


@pytest.fixture
def provider():
  return FakeLocationProvider()


@pytest.fixture
def launcher():
  return FakeLauncher()


@pytest.fixture
def service(notifications, provider, registry):
  return LocationTrackingService(
    notification_manager=notifications,
    location_provider=provider,
    callbacks=registry,
    contexts=BackgroundContextHolder(),
  )


@pytest.fixture
def sample_fix():
  return LocationFix(
    latitude=37.0,
    longitude=-122.0,
    accuracy=5.0,
    altitude=10.0,
    speed=0.0,
    time=1700000000000,
  )
