"""Android entrypoints, run as python-for-android services.

p4a passes the argument given to `Service<Name>.start()` through the
PYTHON_SERVICE_ARGUMENT environment variable.
"""

from __future__ import annotations

import os

from entrypoints.tracking_core import parse_handle, run_boot, run_tracker
from os_interfaces.base import OSImplementations
from os_interfaces.android import (
  AndroidLocationProvider,
  AndroidNotificationManager,
  AndroidPreferenceStorage,
  AndroidServiceLauncher,
)
from tracking.boot import ACTION_BOOT_COMPLETED
from tracking.config import load_settings

TRACKER_SERVICE_CLASS = os.environ.get(
  "GEOTRACK_SERVICE_CLASS", "org.geotrack.geotrack.ServiceTracker"
)


def android_implementations() -> OSImplementations:
  return OSImplementations(
    notification_manager_cls=AndroidNotificationManager,
    location_provider_cls=AndroidLocationProvider,
    service_launcher_cls=lambda: AndroidServiceLauncher(TRACKER_SERVICE_CLASS),
    preference_storage_cls=AndroidPreferenceStorage,
  )


def tracker_service() -> None:
  run_tracker(
    os_impl=android_implementations(),
    settings=load_settings(),
    callback_handle=parse_handle(os.environ.get("PYTHON_SERVICE_ARGUMENT")),
  )


def boot_service() -> None:
  action = os.environ.get("PYTHON_SERVICE_ARGUMENT") or ACTION_BOOT_COMPLETED
  run_boot(os_impl=android_implementations(), action=action)


if __name__ == "__main__":
  tracker_service()
