"""Named method channels over an in-process message conduit.

A `BinaryMessenger` pair connects the tracking service with the background
execution context. Each side wraps its messenger in a `MethodChannel` with the
same name: outgoing calls are encoded with a codec, delivered to the peer's
handler for that name, and the encoded reply is decoded into a `MethodResult`.
A call to a side with no handler registered answers not-implemented.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


class ResultKind(str, Enum):
  SUCCESS = "success"
  ERROR = "error"
  NOT_IMPLEMENTED = "not_implemented"


@dataclass(frozen=True)
class MethodCall:
  method: str
  arguments: Any = None

  def argument(self, key: str, default: Any = None) -> Any:
    if isinstance(self.arguments, dict):
      return self.arguments.get(key, default)
    return default


@dataclass(frozen=True)
class MethodResult:
  kind: ResultKind
  value: Any = None
  error_code: Optional[str] = None
  error_message: Optional[str] = None
  error_details: Any = None

  @classmethod
  def success(cls, value: Any = None) -> "MethodResult":
    return cls(ResultKind.SUCCESS, value=value)

  @classmethod
  def error(
    cls, code: str, message: Optional[str] = None, details: Any = None
  ) -> "MethodResult":
    return cls(
      ResultKind.ERROR, error_code=code, error_message=message, error_details=details
    )

  @classmethod
  def not_implemented(cls) -> "MethodResult":
    return cls(ResultKind.NOT_IMPLEMENTED)

  @property
  def is_success(self) -> bool:
    return self.kind is ResultKind.SUCCESS


MethodCallHandler = Callable[[MethodCall], Awaitable[MethodResult]]
MessageHandler = Callable[[bytes], Awaitable[Optional[bytes]]]


class CodecError(ValueError):
  pass


class JSONMethodCodec:
  """Encodes method calls and results as UTF-8 JSON envelopes."""

  def encode_method_call(self, call: MethodCall) -> bytes:
    return json.dumps({"method": call.method, "args": call.arguments}).encode()

  def decode_method_call(self, message: bytes) -> MethodCall:
    try:
      decoded = json.loads(message)
      return MethodCall(method=decoded["method"], arguments=decoded.get("args"))
    except (ValueError, KeyError, TypeError) as e:
      raise CodecError(f"Invalid method call envelope: {e}") from e

  def encode_result(self, result: MethodResult) -> Optional[bytes]:
    match result.kind:
      case ResultKind.SUCCESS:
        return json.dumps([result.value]).encode()
      case ResultKind.ERROR:
        return json.dumps(
          [result.error_code, result.error_message, result.error_details]
        ).encode()
      case ResultKind.NOT_IMPLEMENTED:
        return None

  def decode_result(self, reply: Optional[bytes]) -> MethodResult:
    if reply is None:
      return MethodResult.not_implemented()
    try:
      decoded = json.loads(reply)
    except ValueError as e:
      raise CodecError(f"Invalid result envelope: {e}") from e
    match decoded:
      case [value]:
        return MethodResult.success(value)
      case [code, message, details]:
        return MethodResult.error(code, message, details)
      case _:
        raise CodecError(f"Invalid result envelope: {decoded!r}")


class BinaryMessenger:
  """One end of an in-process, bidirectional message conduit."""

  def __init__(self, label: str):
    self.label = label
    self._handlers: dict[str, MessageHandler] = {}
    self._peer: BinaryMessenger | None = None

  def set_message_handler(
    self, channel: str, handler: Optional[MessageHandler]
  ) -> None:
    if handler is None:
      self._handlers.pop(channel, None)
    else:
      self._handlers[channel] = handler

  async def send(self, channel: str, message: bytes) -> Optional[bytes]:
    """Deliver `message` to the peer's handler for `channel`.

    Returns the peer's encoded reply, or None when nothing handles `channel`.
    """
    if self._peer is None:
      raise RuntimeError(f"Messenger '{self.label}' is not connected")
    return await self._peer._receive(channel, message)

  async def _receive(self, channel: str, message: bytes) -> Optional[bytes]:
    handler = self._handlers.get(channel)
    if handler is None:
      logger.debug("No handler on '%s' for channel %s", self.label, channel)
      return None
    return await handler(message)


def create_messenger_pair(
  first: str = "host", second: str = "logic"
) -> tuple[BinaryMessenger, BinaryMessenger]:
  a = BinaryMessenger(first)
  b = BinaryMessenger(second)
  a._peer = b
  b._peer = a
  return a, b


class MethodChannel:
  """Named method-call channel on top of a `BinaryMessenger`."""

  def __init__(
    self,
    name: str,
    messenger: BinaryMessenger,
    codec: JSONMethodCodec | None = None,
  ):
    self.name = name
    self.messenger = messenger
    self.codec = codec or JSONMethodCodec()

  def set_method_call_handler(self, handler: Optional[MethodCallHandler]) -> None:
    if handler is None:
      self.messenger.set_message_handler(self.name, None)
      return

    async def on_message(message: bytes) -> Optional[bytes]:
      try:
        call = self.codec.decode_method_call(message)
      except CodecError as e:
        logger.error("Dropping undecodable call on %s: %s", self.name, e)
        return self.codec.encode_result(MethodResult.error("DECODE_ERROR", str(e)))
      try:
        result = await handler(call)
      except Exception as e:
        logger.exception("Handler for %s.%s failed", self.name, call.method)
        result = MethodResult.error("error", str(e))
      return self.codec.encode_result(result)

    self.messenger.set_message_handler(self.name, on_message)

  async def invoke_method(self, method: str, arguments: Any = None) -> MethodResult:
    message = self.codec.encode_method_call(MethodCall(method, arguments))
    reply = await self.messenger.send(self.name, message)
    return self.codec.decode_result(reply)
