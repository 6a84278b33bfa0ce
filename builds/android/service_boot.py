"""python-for-android service script run after the device boots.

Declared in buildozer.spec as `services = Boot:service_boot.py`; the app's
boot receiver starts `ServiceBoot` with the broadcast action as argument.
"""

from entrypoints.android import boot_service

if __name__ == "__main__":
  boot_service()
