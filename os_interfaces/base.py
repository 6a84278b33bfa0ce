"""Abstract base classes for OS-specific interfaces"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from tracking.models import LocationFix


class Importance(str, Enum):
  LOW = "low"
  DEFAULT = "default"
  HIGH = "high"


class Priority(str, Enum):
  HIGH_ACCURACY = "high_accuracy"
  BALANCED_POWER_ACCURACY = "balanced_power_accuracy"
  LOW_POWER = "low_power"


@dataclass(frozen=True)
class NotificationChannelSpec:
  channel_id: str
  name: str
  importance: Importance
  description: str = ""
  show_badge: bool = True
  vibration_pattern: tuple[int, ...] | None = None


@dataclass
class Notification:
  """Host-neutral description of a system notification."""

  notification_id: int
  channel_id: str
  title: str
  body: str
  big_text: str | None = None
  priority: Importance = Importance.DEFAULT
  vibration_pattern: tuple[int, ...] | None = None
  ongoing: bool = False
  auto_cancel: bool = False
  tap_extras: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LocationRequest:
  interval_ms: int = 60_000
  min_interval_ms: int = 30_000
  priority: Priority = Priority.HIGH_ACCURACY


LocationCallback = Callable[[LocationFix], None]
TapHandler = Callable[[dict[str, Any]], None]


class NotificationManager(ABC):
  """Abstract base class for notification management"""

  @abstractmethod
  def ensure_channel(self, channel: NotificationChannelSpec) -> None:
    """Create the notification channel if the host supports channels."""
    raise NotImplementedError

  @abstractmethod
  async def notify(self, notification: Notification) -> None:
    """Post a notification, replacing any shown under the same id.

    Args:
      notification: Notification to show
    """
    raise NotImplementedError

  @abstractmethod
  async def start_foreground(self, notification: Notification) -> None:
    """Show the persistent notification that keeps the process foreground."""
    raise NotImplementedError


class LocationProvider(ABC):
  """Abstract base class for periodic location updates"""

  @abstractmethod
  def request_updates(
    self, request: LocationRequest, callback: LocationCallback
  ) -> None:
    """Subscribe `callback` to location fixes.

    The callback may be invoked from any thread.

    Raises:
      LocationPermissionError: If the location permission is not granted
      LocationUnavailableError: If no location source can be used
    """
    raise NotImplementedError

  @abstractmethod
  def remove_updates(self, callback: LocationCallback) -> None:
    """Cancel a subscription made with `request_updates`."""
    raise NotImplementedError


class ServiceLauncher(ABC):
  """Abstract base class for starting the background tracking process"""

  @abstractmethod
  def start_service(self, callback_handle: Optional[int]) -> None:
    """Ask the host to (re)start the tracking service.

    Args:
      callback_handle: Handle of the application logic entry point, if known
    """
    raise NotImplementedError

  @abstractmethod
  def stop_service(self) -> None:
    """Ask the host to stop the tracking service."""
    raise NotImplementedError


class PreferenceStorage(ABC):
  """Abstract base class for durable key-value preferences"""

  @abstractmethod
  def get(self, key: str, default: Any = None) -> Any:
    """Get a preference value by key"""
    raise NotImplementedError

  @abstractmethod
  def set(self, key: str, value: Any) -> None:
    """Set and persist a preference value"""
    raise NotImplementedError


@dataclass
class OSImplementations:
  """Bundle of platform implementations injected by the entry points."""

  notification_manager_cls: Callable[..., NotificationManager]
  location_provider_cls: Callable[..., LocationProvider]
  service_launcher_cls: Callable[..., ServiceLauncher]
  preference_storage_cls: Callable[..., PreferenceStorage]

  def notification_manager(self, *args, **kwargs) -> NotificationManager:
    return self.notification_manager_cls(*args, **kwargs)

  def location_provider(self, *args, **kwargs) -> LocationProvider:
    return self.location_provider_cls(*args, **kwargs)

  def service_launcher(self, *args, **kwargs) -> ServiceLauncher:
    return self.service_launcher_cls(*args, **kwargs)

  def preference_storage(self, *args, **kwargs) -> PreferenceStorage:
    return self.preference_storage_cls(*args, **kwargs)
