"""
Access Control SDK

In-process access-control engine for multi-tenant services: permission
resolution, field-level security, contextual restrictions and session
policy enforcement, with FastAPI integration.

Example usage:
    from access_control_sdk import AccessControlConfig, create_access_control_engine

    engine = create_access_control_engine(AccessControlConfig())
    decision = engine.authorize("MANAGER", "documents", "READ")
"""

from .version import __version__
from .exceptions import (
    SDKError,
    ConfigurationError,
    SecurityError
)
from .security import (
    AccessControlConfig,
    AccessControlEngine,
    AccessControlEngineBuilder,
    AccessDecision,
    create_access_control_engine,
    create_access_dependency
)

# Package metadata
__title__ = "access-control-sdk"
__license__ = "MIT"

# Version info tuple for programmatic access
VERSION_INFO = tuple(int(part) for part in __version__.split('.'))

__all__ = [
    # Version
    "__version__",
    "VERSION_INFO",

    # Engine
    "AccessControlConfig",
    "AccessControlEngine",
    "AccessControlEngineBuilder",
    "AccessDecision",
    "create_access_control_engine",
    "create_access_dependency",

    # Exceptions
    "SDKError",
    "ConfigurationError",
    "SecurityError",
]
