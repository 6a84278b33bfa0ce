"""Callback handles for application logic entry points.

A handle is a stable signed 64-bit integer derived from the entry point's
import path, so it survives process restarts and can be persisted. The
registry remembers which import path each handle stands for.
"""

from __future__ import annotations

import hashlib
import importlib
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from os_interfaces.base import PreferenceStorage

logger = logging.getLogger(__name__)

REGISTRY_KEY = "callback_registry"

EntryPoint = Callable[[Any], Awaitable[None]]


@dataclass(frozen=True)
class CallbackInformation:
  handle: int
  module: str
  qualname: str

  @property
  def path(self) -> str:
    return f"{self.module}:{self.qualname}"

  def resolve(self) -> EntryPoint:
    """Import and return the entry point.

    Raises:
      ImportError: If the module cannot be imported
      AttributeError: If the module has no such attribute
    """
    target: Any = importlib.import_module(self.module)
    for part in self.qualname.split("."):
      target = getattr(target, part)
    return target


def handle_for_path(path: str) -> int:
  """Stable non-zero 64-bit handle for a `module:qualname` path."""
  digest = hashlib.sha256(path.encode()).digest()
  handle = int.from_bytes(digest[:8], "big", signed=True)
  # 0 means "no callback" in the persisted preferences
  return handle or 1


def _split_path(path: str) -> tuple[str, str]:
  module, sep, qualname = path.partition(":")
  if not sep or not module or not qualname:
    raise ValueError(f"Entry point must look like 'package.module:function', got: {path}")
  return module, qualname


class CallbackRegistry:
  """Handle -> entry point mapping kept in durable preferences"""

  def __init__(self, storage: PreferenceStorage):
    self.storage = storage

  def _entries(self) -> dict[str, str]:
    raw = self.storage.get(REGISTRY_KEY, {})
    if not isinstance(raw, dict):
      logger.warning("Ignoring malformed callback registry: %r", raw)
      return {}
    return {str(k): str(v) for k, v in raw.items()}

  def register(self, entry_point: EntryPoint | str) -> int:
    """Register an entry point (callable or 'module:qualname') and return its handle."""
    if isinstance(entry_point, str):
      module, qualname = _split_path(entry_point)
    else:
      module, qualname = entry_point.__module__, entry_point.__qualname__
      if "<locals>" in qualname:
        raise ValueError(f"Entry point must be importable, got local {qualname}")
    path = f"{module}:{qualname}"
    handle = handle_for_path(path)

    entries = self._entries()
    if entries.get(str(handle)) != path:
      entries[str(handle)] = path
      self.storage.set(REGISTRY_KEY, entries)
      logger.info("Registered callback %s as handle %s", path, handle)
    return handle

  def lookup(self, handle: int) -> CallbackInformation | None:
    path = self._entries().get(str(handle))
    if path is None:
      return None
    module, qualname = _split_path(path)
    return CallbackInformation(handle=handle, module=module, qualname=qualname)
