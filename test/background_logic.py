"""Application logic entry points resolved by callback handle in the tests"""

from bridge.channel import MethodCall, MethodChannel, MethodResult

received: list[dict] = []
alert_results: list[MethodResult] = []

ADMIN_ALERT = {
  "distance": 250.5,
  "message": "User u1 left the allowed area\n250 m outside",
  "title": "Admin alert",
  "is_admin_notification": True,
  "user_id": "u1",
}


def reset() -> None:
  received.clear()
  alert_results.clear()


async def record_updates(channel: MethodChannel) -> None:
  async def on_call(call: MethodCall) -> MethodResult:
    if call.method == "onLocationUpdate":
      received.append(call.arguments)
      return MethodResult.success(None)
    return MethodResult.not_implemented()

  channel.set_method_call_handler(on_call)


async def alert_on_update(channel: MethodChannel) -> None:
  async def on_call(call: MethodCall) -> MethodResult:
    if call.method != "onLocationUpdate":
      return MethodResult.not_implemented()
    received.append(call.arguments)
    alert_results.append(await channel.invoke_method("showGeofenceAlert", ADMIN_ALERT))
    return MethodResult.success(None)

  channel.set_method_call_handler(on_call)


async def crashing(channel: MethodChannel) -> None:
  raise RuntimeError("entry point crashed")
