"""
Data models carried across the tracking service and the method channel
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

LOCATION_FIELDS = ("latitude", "longitude", "accuracy", "altitude", "speed", "time")


class TrackingPreference(BaseModel):
  """Persisted tracking switch plus the entry point handle to resume"""

  model_config = ConfigDict(frozen=True)

  tracking_enabled: bool = False
  callback_handle: int = 0

  @property
  def should_restore(self) -> bool:
    """Handle is only meaningful while tracking is enabled."""
    return self.tracking_enabled and self.callback_handle != 0


class LocationFix(BaseModel):
  """A single fix as produced by the location provider"""

  model_config = ConfigDict(frozen=True)

  latitude: float
  longitude: float
  accuracy: float
  altitude: float
  speed: float
  time: int = Field(..., description="Fix time in epoch milliseconds")
  is_mock: bool = Field(False, description="Provider flagged the fix as mocked")

  def to_payload(self) -> dict[str, Any]:
    """Payload of the `onLocationUpdate` method call; `is_mock` stays local."""
    return {name: getattr(self, name) for name in LOCATION_FIELDS}


class AlertRequest(BaseModel):
  """Arguments of a `showGeofenceAlert` call"""

  model_config = ConfigDict(frozen=True)

  distance: float
  message: str
  title: Optional[str] = None
  is_admin_notification: bool = False
  user_id: Optional[str] = None

  @field_validator("is_admin_notification", mode="before")
  @classmethod
  def default_admin_flag(cls, v):
    """A null flag from the caller means a regular alert"""
    return False if v is None else v

  @property
  def targets_user(self) -> bool:
    return self.is_admin_notification and self.user_id is not None
