"""Linux service launcher using systemd user units through pystemd"""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from pystemd.dbuslib import DBus
from pystemd.systemd1 import Manager

from .base import ServiceLauncher

logger = logging.getLogger(__name__)


class LinuxServiceLauncher(ServiceLauncher):
  """Runs the tracker as a templated systemd user service.

  `<app>-tracker@<handle>.service` runs the tracker CLI with the callback
  handle as instance name; `<app>-boot.service` runs the boot restorer once
  per login session.
  """

  def __init__(
    self,
    app_name: str,
    tracker_command: str = "geotrack-tracker",
    boot_command: str = "geotrack-boot",
  ):
    self.app_name = app_name
    self.tracker_command = tracker_command
    self.boot_command = boot_command

  # ---- helpers ----
  @contextmanager
  def _connect_systemd(self):
    with DBus(user_mode=True) as bus:
      manager = Manager(bus=bus)
      manager.load()
      yield manager

  def _user_unit_dir(self) -> Path:
    return Path.home() / ".config/systemd/user"

  def _write_unit(self, name: str, content: str) -> Path:
    d = self._user_unit_dir()
    d.mkdir(parents=True, exist_ok=True)
    p = d / name
    p.write_text(content)
    return p

  def _unit_file_exists(self, manager: Manager, name: str) -> bool:
    files = [u[0] for u in manager.Manager.ListUnitFiles()]
    return any(f.endswith(name.encode()) for f in files)

  @property
  def tracker_template(self) -> str:
    return f"{self.app_name}-tracker@.service"

  @property
  def boot_unit(self) -> str:
    return f"{self.app_name}-boot.service"

  def tracker_unit(self, callback_handle: int) -> str:
    return f"{self.app_name}-tracker@{callback_handle}.service"

  def _tracker_content(self) -> str:
    return (
      "[Unit]\n"
      f"Description={self.app_name} background location tracking (handle %i)\n"
      "\n[Service]\n"
      "Type=simple\n"
      f"ExecStart={self.tracker_command} --callback-handle=%i\n"
      "Restart=on-failure\n"
    )

  def _boot_content(self) -> str:
    return (
      "[Unit]\n"
      f"Description={self.app_name} restore location tracking\n"
      "\n[Service]\n"
      "Type=oneshot\n"
      f"ExecStart={self.boot_command}\n"
      "\n[Install]\n"
      "WantedBy=default.target\n"
    )

  def _running_tracker_units(self, manager: Manager) -> list[bytes]:
    prefix = f"{self.app_name}-tracker@".encode()
    return [u[0] for u in manager.Manager.ListUnits() if u[0].startswith(prefix)]

  # ---- public API ----
  def install_units(self) -> None:
    """Install the tracker template and enable the boot unit; idempotent."""
    with self._connect_systemd() as m:
      written = False
      if not self._unit_file_exists(m, self.tracker_template):
        self._write_unit(self.tracker_template, self._tracker_content())
        written = True
      if not self._unit_file_exists(m, self.boot_unit):
        self._write_unit(self.boot_unit, self._boot_content())
        written = True
      if written:
        m.Manager.Reload()
      else:
        logger.info("Tracking units already present")
      m.Manager.EnableUnitFiles([self.boot_unit.encode()], False, True)

  def start_service(self, callback_handle: Optional[int]) -> None:
    if not callback_handle:
      raise ValueError("The Linux tracker needs a callback handle to start")
    self.install_units()
    unit = self.tracker_unit(callback_handle)
    with self._connect_systemd() as m:
      m.Manager.StartUnit(unit.encode(), b"replace")
    logger.info(f"Started {unit}")

  def stop_service(self) -> None:
    with self._connect_systemd() as m:
      for unit in self._running_tracker_units(m):
        m.Manager.StopUnit(unit, b"replace")
        logger.info(f"Stopped {unit.decode()}")
