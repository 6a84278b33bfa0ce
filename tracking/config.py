"""
Configuration for the tracking service
Reads tracking.yaml from the user config directory, then GEOTRACK_* overrides
"""

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from platformdirs import user_config_dir
from pydantic import BaseModel, field_validator, model_validator

from os_interfaces.base import LocationRequest, Priority

logger = logging.getLogger(__name__)

# Load environment variables from .env file
load_dotenv()

APP_NAME = "geotrack"
SETTINGS_FILE = "tracking.yaml"
PREFS_NAMESPACE = "LocationTrackingPrefs"
DEFAULT_CHANNEL_NAME = "geotrack/location_background"
DEFAULT_ALERT_TITLE = "⚠️ Geofence Alert"

# env var -> settings field
ENV_OVERRIDES = {
  "GEOTRACK_CHANNEL_NAME": "channel_name",
  "GEOTRACK_INTERVAL_MS": "interval_ms",
  "GEOTRACK_MIN_INTERVAL_MS": "min_interval_ms",
  "GEOTRACK_PRIORITY": "priority",
  "GEOTRACK_REPLAY_TRACK": "replay_track",
  "GEOTRACK_DETECT_SPOOFING": "detect_spoofing",
}

DEBUG = os.getenv("GEOTRACK_DEBUG", "").strip().lower() in {"1", "true"}


class TrackingSettings(BaseModel):
  """Tunables of the tracking service; defaults match the mobile app"""

  app_name: str = APP_NAME
  channel_name: str = DEFAULT_CHANNEL_NAME
  interval_ms: int = 60_000
  min_interval_ms: int = 30_000
  priority: Priority = Priority.HIGH_ACCURACY
  default_alert_title: str = DEFAULT_ALERT_TITLE
  replay_track: Optional[Path] = None
  detect_spoofing: bool = True

  @field_validator("interval_ms", "min_interval_ms")
  @classmethod
  def positive_interval(cls, v: int) -> int:
    if v <= 0:
      raise ValueError(f"Intervals must be positive, got: {v}")
    return v

  @model_validator(mode="after")
  def validate_floor(self):
    """The minimum interval is a floor under the target interval"""
    if self.min_interval_ms > self.interval_ms:
      raise ValueError(
        f"min_interval_ms ({self.min_interval_ms}) must not exceed "
        f"interval_ms ({self.interval_ms})"
      )
    return self

  def location_request(self) -> LocationRequest:
    return LocationRequest(
      interval_ms=self.interval_ms,
      min_interval_ms=self.min_interval_ms,
      priority=self.priority,
    )


def default_settings_path() -> Path:
  return Path(user_config_dir(APP_NAME, ensure_exists=True)) / SETTINGS_FILE


def load_settings(config_path: Path | str | None = None) -> TrackingSettings:
  """
  Load tracking settings

  Args:
      config_path: YAML file to read; defaults to the user config directory.
        A missing file yields the defaults.

  Raises:
      yaml.YAMLError: If YAML is malformed
      pydantic.ValidationError: If the values don't match the schema
  """
  path = Path(config_path) if config_path else default_settings_path()

  raw: dict = {}
  if path.exists():
    with open(path, "r") as f:
      raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
      raise ValueError(f"Settings file {path} must contain a mapping")
    logger.debug(f"Loaded settings from {path}")

  for env_name, field_name in ENV_OVERRIDES.items():
    value = os.getenv(env_name)
    if value:
      raw[field_name] = value

  return TrackingSettings(**raw)
