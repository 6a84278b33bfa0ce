"""python-for-android service script for the location tracker.

Declared in buildozer.spec as `services = Tracker:service_tracker.py:foreground:sticky`
so p4a generates `ServiceTracker`, which `AndroidServiceLauncher` starts with the
callback handle as argument.
"""

from entrypoints.android import tracker_service

if __name__ == "__main__":
  tracker_service()
