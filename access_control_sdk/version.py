# access-control-sdk/access_control_sdk/version.py
"""
Version management for the Access Control SDK.

This module handles version information and compatibility checks.
"""

import sys
from typing import Tuple, Dict, Any

# Current SDK version
__version__ = "0.1.0"

# Version components for programmatic access
VERSION_MAJOR = 0
VERSION_MINOR = 1
VERSION_PATCH = 0
VERSION_PRE_RELEASE = None  # None, "alpha", "beta", "rc"

# Compatibility information
PYTHON_MIN_VERSION = (3, 9)


def get_version() -> str:
    """
    Get the full version string.

    Returns:
        Version string in semver format (e.g., "0.1.0", "0.1.0-alpha")
    """
    version = f"{VERSION_MAJOR}.{VERSION_MINOR}.{VERSION_PATCH}"
    if VERSION_PRE_RELEASE:
        version += f"-{VERSION_PRE_RELEASE}"
    return version


def get_version_info() -> Tuple[int, int, int, str]:
    """Get version information as a (major, minor, patch, pre_release) tuple."""
    return (
        VERSION_MAJOR,
        VERSION_MINOR,
        VERSION_PATCH,
        VERSION_PRE_RELEASE or "",
    )


def check_python_compatibility() -> bool:
    """Check if the running interpreter is supported."""
    return sys.version_info[:2] >= PYTHON_MIN_VERSION


def get_build_info() -> Dict[str, Any]:
    """
    Get build information for the SDK.

    Example:
        from access_control_sdk.version import get_build_info
        info = get_build_info()
        print(info["version"])
    """
    return {
        "version": get_version(),
        "version_info": get_version_info(),
        "python_version": f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
        "python_compatible": check_python_compatibility(),
        "min_python": f"{PYTHON_MIN_VERSION[0]}.{PYTHON_MIN_VERSION[1]}",
    }


def is_development_version() -> bool:
    """Check if this is a development version (pre-release or below 1.0.0)."""
    return VERSION_PRE_RELEASE is not None or VERSION_MAJOR == 0


VERSION = __version__
VERSION_TUPLE = (VERSION_MAJOR, VERSION_MINOR, VERSION_PATCH)
