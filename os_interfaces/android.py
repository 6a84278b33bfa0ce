"""Android-specific implementations of OS interfaces."""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from jnius import JavaException, PythonJavaClass, autoclass, java_method  # type: ignore

from tracking.errors import LocationPermissionError, LocationUnavailableError
from tracking.models import LocationFix
from .base import (
  Importance,
  LocationCallback,
  LocationProvider,
  LocationRequest,
  Notification,
  NotificationChannelSpec,
  NotificationManager,
  PreferenceStorage,
  Priority,
  ServiceLauncher,
)

logger = logging.getLogger(__name__)


# --- PyJNIus handles ---
PythonActivity = autoclass("org.kivy.android.PythonActivity")
PythonService = autoclass("org.kivy.android.PythonService")
Intent = autoclass("android.content.Intent")
PendingIntent = autoclass("android.app.PendingIntent")
NotificationManagerJava = autoclass("android.app.NotificationManager")
NotificationChannel = autoclass("android.app.NotificationChannel")
BuildVersion = autoclass("android.os.Build$VERSION")
NotificationCompatBuilder = autoclass("androidx.core.app.NotificationCompat$Builder")
NotificationCompat = autoclass("androidx.core.app.NotificationCompat")
BigTextStyle = autoclass("androidx.core.app.NotificationCompat$BigTextStyle")
AndroidRDrawable = autoclass("android.R$drawable")
Context = autoclass("android.content.Context")
Looper = autoclass("android.os.Looper")
LocationServices = autoclass("com.google.android.gms.location.LocationServices")
LocationRequestBuilder = autoclass(
  "com.google.android.gms.location.LocationRequest$Builder"
)
GmsPriority = autoclass("com.google.android.gms.location.Priority")

_IMPORTANCE = {
  Importance.LOW: NotificationManagerJava.IMPORTANCE_LOW,
  Importance.DEFAULT: NotificationManagerJava.IMPORTANCE_DEFAULT,
  Importance.HIGH: NotificationManagerJava.IMPORTANCE_HIGH,
}
_PRIORITY = {
  Importance.LOW: NotificationCompat.PRIORITY_LOW,
  Importance.DEFAULT: NotificationCompat.PRIORITY_DEFAULT,
  Importance.HIGH: NotificationCompat.PRIORITY_HIGH,
}
_LOCATION_PRIORITY = {
  Priority.HIGH_ACCURACY: GmsPriority.PRIORITY_HIGH_ACCURACY,
  Priority.BALANCED_POWER_ACCURACY: GmsPriority.PRIORITY_BALANCED_POWER_ACCURACY,
  Priority.LOW_POWER: GmsPriority.PRIORITY_LOW_POWER,
}


def _context():
  """Service context inside a p4a service, activity context otherwise."""
  service = PythonService.mService
  if service is not None:
    return service.getApplicationContext()
  return PythonActivity.mActivity.getApplicationContext()


def _flags(base: int | None = None) -> int:
  flag_immutable = PendingIntent.FLAG_IMMUTABLE
  flag_update = PendingIntent.FLAG_UPDATE_CURRENT
  return (base or 0) | flag_immutable | flag_update


class AndroidNotificationManager(NotificationManager):
  """Android notification manager using PyJNIus NotificationCompat."""

  def __init__(self):
    self.ctx = _context()
    self.manager = self.ctx.getSystemService(Context.NOTIFICATION_SERVICE)

  def ensure_channel(self, channel: NotificationChannelSpec) -> None:
    if BuildVersion.SDK_INT < 26:
      return
    java_channel = NotificationChannel(
      channel.channel_id, channel.name, _IMPORTANCE[channel.importance]
    )
    java_channel.setDescription(channel.description)
    java_channel.setShowBadge(channel.show_badge)
    if channel.vibration_pattern:
      java_channel.enableVibration(True)
      java_channel.setVibrationPattern(list(channel.vibration_pattern))
    self.manager.createNotificationChannel(java_channel)

  def _tap_intent(self, notification: Notification):
    intent = Intent(self.ctx, PythonActivity)
    intent.setFlags(Intent.FLAG_ACTIVITY_NEW_TASK | Intent.FLAG_ACTIVITY_CLEAR_TASK)
    for key, value in notification.tap_extras.items():
      intent.putExtra(key, value)
    return PendingIntent.getActivity(self.ctx, 0, intent, _flags())

  def _build(self, notification: Notification):
    icon = self.ctx.getApplicationInfo().icon or AndroidRDrawable.ic_dialog_info
    builder = (
      NotificationCompatBuilder(self.ctx, notification.channel_id)
      .setSmallIcon(icon)
      .setContentTitle(notification.title)
      .setContentText(notification.body)
      .setPriority(_PRIORITY[notification.priority])
      .setContentIntent(self._tap_intent(notification))
      .setOngoing(notification.ongoing)
      .setAutoCancel(notification.auto_cancel)
    )
    if notification.big_text:
      builder.setStyle(BigTextStyle().bigText(notification.big_text))
    if notification.vibration_pattern:
      builder.setVibrate(list(notification.vibration_pattern))
    return builder.build()

  async def notify(self, notification: Notification) -> None:
    self.manager.notify(notification.notification_id, self._build(notification))
    logger.info("Notification %s posted", notification.notification_id)

  async def start_foreground(self, notification: Notification) -> None:
    service = PythonService.mService
    if service is None:
      logger.warning("Not running inside a service; posting a plain notification")
      await self.notify(notification)
      return
    service.startForeground(notification.notification_id, self._build(notification))


def _fix_from_location(location) -> LocationFix:
  return LocationFix(
    latitude=location.getLatitude(),
    longitude=location.getLongitude(),
    accuracy=location.getAccuracy(),
    altitude=location.getAltitude(),
    speed=location.getSpeed(),
    time=location.getTime(),
    is_mock=bool(location.isFromMockProvider()),
  )


class _LocationListener(PythonJavaClass):
  __javainterfaces__ = ["com/google/android/gms/location/LocationListener"]
  __javacontext__ = "app"

  def __init__(self, callback: LocationCallback):
    super().__init__()
    self.callback = callback

  @java_method("(Landroid/location/Location;)V")
  def onLocationChanged(self, location):
    try:
      self.callback(_fix_from_location(location))
    except Exception:  # pragma: no cover - defensive
      logger.exception("Location callback failed")


class AndroidLocationProvider(LocationProvider):
  """Fused location provider from Google Play services."""

  def __init__(self):
    self.ctx = _context()
    self.client = LocationServices.getFusedLocationProviderClient(self.ctx)
    self._listeners: dict[int, _LocationListener] = {}

  def request_updates(
    self, request: LocationRequest, callback: LocationCallback
  ) -> None:
    java_request = (
      LocationRequestBuilder(request.interval_ms)
      .setPriority(_LOCATION_PRIORITY[request.priority])
      .setMinUpdateIntervalMillis(request.min_interval_ms)
      .build()
    )
    listener = _LocationListener(callback)
    try:
      self.client.requestLocationUpdates(
        java_request, listener, Looper.getMainLooper()
      )
    except JavaException as e:
      if "SecurityException" in (e.classname or ""):
        raise LocationPermissionError(str(e)) from e
      raise LocationUnavailableError(str(e)) from e
    self._listeners[id(callback)] = listener

  def remove_updates(self, callback: LocationCallback) -> None:
    listener = self._listeners.pop(id(callback), None)
    if listener is not None:
      self.client.removeLocationUpdates(listener)


class AndroidServiceLauncher(ServiceLauncher):
  """Starts the python-for-android tracking service.

  p4a generates `<package>.Service<Name>` for each declared service; the
  callback handle travels as the service argument string.
  """

  def __init__(self, service_class: str):
    self.service = autoclass(service_class)

  def start_service(self, callback_handle: Optional[int]) -> None:
    argument = str(callback_handle) if callback_handle is not None else ""
    self.service.start(_context(), argument)
    logger.info("Requested tracking service start (handle %s)", callback_handle)

  def stop_service(self) -> None:
    self.service.stop(_context())


class AndroidPreferenceStorage(PreferenceStorage):
  """SharedPreferences; non-primitive values are stored as JSON strings."""

  _JSON_PREFIX = "json:"

  def __init__(self, namespace: str):
    self.prefs = _context().getSharedPreferences(namespace, Context.MODE_PRIVATE)

  def get(self, key: str, default: Any = None) -> Any:
    if not self.prefs.contains(key):
      return default
    try:
      if isinstance(default, bool):
        return bool(self.prefs.getBoolean(key, default))
      if isinstance(default, int):
        return int(self.prefs.getLong(key, default))
      raw = self.prefs.getString(key, None)
    except JavaException as e:
      # Stored under a different type than the default suggests
      logger.warning("Preference %s has an unexpected type: %s", key, e)
      return default
    if raw is not None and raw.startswith(self._JSON_PREFIX):
      return json.loads(raw[len(self._JSON_PREFIX):])
    return raw

  def set(self, key: str, value: Any) -> None:
    editor = self.prefs.edit()
    if isinstance(value, bool):
      editor.putBoolean(key, value)
    elif isinstance(value, int):
      editor.putLong(key, value)
    elif isinstance(value, str):
      editor.putString(key, value)
    else:
      editor.putString(key, self._JSON_PREFIX + json.dumps(value))
    editor.apply()
