"""Method-channel bridge between the tracking service and application logic"""

from .callbacks import CallbackInformation, CallbackRegistry
from .channel import MethodCall, MethodChannel, MethodResult, ResultKind
from .context import BackgroundContext, BackgroundContextHolder

__all__ = [
  "BackgroundContext",
  "BackgroundContextHolder",
  "CallbackInformation",
  "CallbackRegistry",
  "MethodCall",
  "MethodChannel",
  "MethodResult",
  "ResultKind",
]
