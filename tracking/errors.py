"""
Failure categories and exceptions for the tracking service
"""

from enum import Enum
from typing import Literal, Optional, cast

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
  """Events the service skips instead of crashing on"""

  PERMISSION_DENIED = "PERMISSION_DENIED"
  CONTEXT_UNAVAILABLE = "CONTEXT_UNAVAILABLE"
  CALLBACK_NOT_FOUND = "CALLBACK_NOT_FOUND"
  RELAY_FAILED = "RELAY_FAILED"
  NOTIFICATION_ERROR = "NOTIFICATION_ERROR"
  NOT_IMPLEMENTED = "NOT_IMPLEMENTED"


# Where an error originated
ErrorSource = Literal[
  "location",  # Location provider subscription
  "bridge",  # Method channel / background execution context
  "notifications",  # Notification posting
  "launcher",  # Starting or stopping the tracking service
  "preferences",  # Durable preference storage
  "unknown",  # Uncategorized errors
]


class ErrorResponse(BaseModel):
  """Standardized error description"""

  description: str = Field(..., description="Human-readable error message")
  name: str = Field(..., description="Unique error identifier")
  source: ErrorSource = Field(..., description="Where the error originated")
  caused_by: Optional[str] = Field(
    None, description="Original error details if this is a chained error"
  )


class TrackingError(Exception):
  """
  Base exception for tracking errors.
  Carries a stable name so callers can map it to a channel error code.
  """

  def __init__(
    self,
    description: str,
    name: str,
    source: ErrorSource,
    caused_by: Optional[str] = None,
  ):
    self.description: str = description
    self.name: str = name
    self.source: ErrorSource = source
    self.caused_by: Optional[str] = caused_by
    super().__init__(description)

  def to_response(self) -> ErrorResponse:
    return ErrorResponse(
      description=self.description,
      name=self.name,
      source=cast(ErrorSource, self.source),
      caused_by=self.caused_by,
    )

  @classmethod
  def from_exception(
    cls,
    e: Exception,
    name: str,
    source: ErrorSource,
    context: Optional[str] = None,
  ) -> "TrackingError":
    """
    Create a TrackingError from an existing exception

    Args:
        e: The original exception
        name: Error identifier for this error
        source: Where this error originated
        context: Additional context to prepend to the description
    """
    original_msg = str(e)
    description = f"{context}: {original_msg}" if context else original_msg

    return cls(
      description=description,
      name=name,
      source=source,
      caused_by=f"{e.__class__.__name__}: {original_msg}",
    )


class LocationPermissionError(TrackingError):
  def __init__(self, description: str = "Location permission not granted"):
    super().__init__(description, FailureKind.PERMISSION_DENIED.value, "location")


class LocationUnavailableError(TrackingError):
  def __init__(self, description: str):
    super().__init__(description, "LOCATION_UNAVAILABLE", "location")
