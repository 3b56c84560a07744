"""App Toolkit - release and runtime helpers for mobile app projects.

This package provides a tiered (memory + disk) image cache with size and
age based eviction, and a build matrix runner that drives the external
build tool once per flavor and build type.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
