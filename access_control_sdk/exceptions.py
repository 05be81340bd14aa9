# access-control-sdk/access_control_sdk/exceptions.py
"""
Exception classes for the Access Control SDK.

This module defines the base exceptions shared by every part of the SDK.
Authorization decisions themselves are never signalled with exceptions;
these types cover configuration and data-loading failures.
"""

from typing import Optional, Dict, Any


class SDKError(Exception):
    """Base exception for all SDK errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ConfigurationError(SDKError):
    """Exception raised for configuration errors."""
    pass


class SecurityError(SDKError):
    """Exception raised for security-related errors."""
    pass
