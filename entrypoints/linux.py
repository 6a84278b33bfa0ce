"""Linux entrypoints: `geotrack-tracker`, `geotrack-boot`, `geotrack-ctl`."""

from __future__ import annotations

import argparse
import logging
import subprocess
import sys
from functools import partial
from pathlib import Path

from entrypoints.tracking_core import (
  callback_registry,
  parse_handle,
  run_boot,
  run_tracker,
  tracking_controller,
)
from os_interfaces.base import OSImplementations
from os_interfaces.linux import (
  LinuxNotificationManager,
  LinuxPreferenceStorage,
  ReplayLocationProvider,
)
from tracking.boot import ACTION_BOOT_COMPLETED
from tracking.config import TrackingSettings, load_settings
from tracking.controller import TapRouter

logger = logging.getLogger(__name__)


def open_user_location(user_id: str) -> None:
  """Open the app's per-user location view through its URL scheme."""
  try:
    subprocess.Popen(
      ["xdg-open", f"geotrack://user/{user_id}"],
      stdout=subprocess.DEVNULL,
      stderr=subprocess.DEVNULL,
    )
    logger.info("Opened location view for user %s", user_id)
  except Exception as e:
    logger.error(f"Failed to open app: {e}")


def linux_implementations(settings: TrackingSettings) -> OSImplementations:
  # pystemd is only needed by the launcher; import lazily
  def launcher(*args, **kwargs):
    from os_interfaces.systemd import LinuxServiceLauncher

    return LinuxServiceLauncher(settings.app_name, *args, **kwargs)

  router = TapRouter(navigator=open_user_location)
  return OSImplementations(
    notification_manager_cls=partial(
      LinuxNotificationManager, app_name=settings.app_name, on_tap=router.handle_extras
    ),
    location_provider_cls=partial(ReplayLocationProvider, settings.replay_track),
    service_launcher_cls=launcher,
    preference_storage_cls=partial(LinuxPreferenceStorage, settings.app_name),
  )


def _load(config: Path | None) -> TrackingSettings:
  try:
    return load_settings(config)
  except Exception as e:
    logger.error(f"Failed to load settings: {e}")
    sys.exit(1)


def tracker_main(argv: list[str] | None = None) -> None:
  parser = argparse.ArgumentParser(
    description="Run the background location tracking service until interrupted."
  )
  parser.add_argument("--callback-handle", help="Handle of the application logic entry point")
  parser.add_argument("--config", type=Path, help="Path to tracking.yaml")
  args = parser.parse_args(argv)

  settings = _load(args.config)
  run_tracker(
    os_impl=linux_implementations(settings),
    settings=settings,
    callback_handle=parse_handle(args.callback_handle),
  )


def boot_main(argv: list[str] | None = None) -> None:
  parser = argparse.ArgumentParser(
    description="Restart location tracking if it was enabled before shutdown."
  )
  parser.add_argument("--action", default=ACTION_BOOT_COMPLETED)
  parser.add_argument("--config", type=Path, help="Path to tracking.yaml")
  args = parser.parse_args(argv)

  settings = _load(args.config)
  restored = run_boot(os_impl=linux_implementations(settings), action=args.action)
  logger.info("Tracking %s", "restored" if restored else "not restored")


def ctl_main(argv: list[str] | None = None) -> None:
  parser = argparse.ArgumentParser(description="Enable or disable location tracking.")
  parser.add_argument("--config", type=Path, help="Path to tracking.yaml")
  sub = parser.add_subparsers(dest="command", required=True)
  enable = sub.add_parser("enable", help="Register an entry point and start tracking")
  enable.add_argument("entrypoint", help="Application logic, as 'package.module:function'")
  sub.add_parser("disable", help="Stop tracking")
  sub.add_parser("status", help="Show the persisted tracking preference")
  args = parser.parse_args(argv)

  settings = _load(args.config)
  os_impl = linux_implementations(settings)
  controller = tracking_controller(os_impl)

  match args.command:
    case "enable":
      try:
        handle = callback_registry(os_impl).register(args.entrypoint)
      except ValueError as e:
        logger.error(str(e))
        sys.exit(2)
      ok = controller.start_tracking(handle)
    case "disable":
      ok = controller.stop_tracking()
    case _:
      preference = controller.status()
      print(
        f"tracking_enabled={preference.tracking_enabled} "
        f"callback_handle={preference.callback_handle}"
      )
      ok = True

  sys.exit(0 if ok else 1)


if __name__ == "__main__":
  tracker_main()
