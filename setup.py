from setuptools import find_packages, setup

# Minimal setup.py to allow pip installation in environments (like p4a) that
# default to legacy builds and need explicit python_requires.

package_list = find_packages(
  include=[
    "entrypoints",
    "entrypoints.*",
    "bridge",
    "bridge.*",
    "os_interfaces",
    "os_interfaces.*",
    "tracking",
    "tracking.*",
  ]
)

setup(
  name="geotrack",
  version="0.1.0",
  description="Background location reporting service with geofence alert bridge",
  python_requires=">=3.11",
  packages=package_list,
  include_package_data=True,
  install_requires=[
    "pyyaml",
    "pydantic>=2",
    "python-dotenv",
    "platformdirs",
    "desktop-notifier>=5",
  ],
  extras_require={
    "android": ["pyjnius", "cython==3.0.12", "buildozer"],
    "linux": ["pystemd"],
    "dev": ["pytest", "pytest-asyncio", "pytest-cov"],
  },
  entry_points={
    "console_scripts": [
      "geotrack-tracker=entrypoints.linux:tracker_main",
      "geotrack-boot=entrypoints.linux:boot_main",
      "geotrack-ctl=entrypoints.linux:ctl_main",
    ],
  },
)
