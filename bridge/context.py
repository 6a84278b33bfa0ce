"""Background execution context hosting the application logic.

The context owns both ends of the channel: `host_channel` is used by the
tracking service, `logic_channel` is handed to the application entry point,
which runs as a task on the service's event loop.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Callable, Optional

from bridge.callbacks import CallbackInformation
from bridge.channel import MethodChannel

logger = logging.getLogger(__name__)


class BackgroundContext:
  def __init__(
    self,
    info: CallbackInformation,
    host_channel: MethodChannel,
    logic_channel: MethodChannel,
  ):
    self.info = info
    self.host_channel = host_channel
    self.logic_channel = logic_channel
    self._task: asyncio.Task | None = None

  @property
  def callback_handle(self) -> int:
    return self.info.handle

  @property
  def running(self) -> bool:
    return self._task is not None and not self._task.done()

  def start(self) -> None:
    """Resolve the entry point and schedule it on the running loop.

    Raises:
      ImportError, AttributeError: If the entry point cannot be resolved
    """
    entry_point = self.info.resolve()
    self._task = asyncio.get_running_loop().create_task(
      entry_point(self.logic_channel), name=f"background-{self.info.qualname}"
    )
    self._task.add_done_callback(self._on_done)
    logger.info("Background context started for %s", self.info.path)

  def _on_done(self, task: asyncio.Task) -> None:
    if task.cancelled():
      return
    exc = task.exception()
    if exc is not None:
      logger.error(
        "Background entry point %s failed", self.info.path, exc_info=exc
      )

  async def stop(self) -> None:
    if self._task is not None and not self._task.done():
      self._task.cancel()
      try:
        await self._task
      except asyncio.CancelledError:
        pass


class BackgroundContextHolder:
  """Single-initialization slot for the process-wide background context."""

  def __init__(self):
    self._lock = threading.Lock()
    self._context: BackgroundContext | None = None

  @property
  def context(self) -> Optional[BackgroundContext]:
    return self._context

  def get_or_create(
    self,
    callback_handle: int,
    factory: Callable[[int], Optional[BackgroundContext]],
  ) -> Optional[BackgroundContext]:
    """Return the live context, creating it from `callback_handle` if absent.

    The first handle wins: once a context exists, later handles are ignored.
    A factory returning None leaves the slot empty so a later call may retry.
    """
    with self._lock:
      if self._context is None:
        self._context = factory(callback_handle)
      elif self._context.callback_handle != callback_handle:
        logger.info(
          "Background context already running for handle %s; ignoring %s",
          self._context.callback_handle,
          callback_handle,
        )
      return self._context

  def clear(self) -> Optional[BackgroundContext]:
    with self._lock:
      context, self._context = self._context, None
      return context
