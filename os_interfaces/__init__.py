"""OS interface module - platform-specific implementations

Since we build separate executables for each platform,
import the appropriate implementation directly in the entry points:
- entrypoints/*_linux.py import from os_interfaces.linux
- entrypoints/*_android.py import from os_interfaces.android
"""

from .base import (
  LocationProvider,
  NotificationManager,
  OSImplementations,
  PreferenceStorage,
  ServiceLauncher,
)

__all__ = [
  "LocationProvider",
  "NotificationManager",
  "OSImplementations",
  "PreferenceStorage",
  "ServiceLauncher",
]
