"""
Resource types managed by the reconciler.

Each resource type is a ResourceGateway subclass pairing an attribute
policy with the remote operations for that type. Read-only lookups are
DataSource subclasses. Third-party resource types are discovered via
Python entry points (group: 'turso_reconciler.resources').
"""

from resources.base import (
    DataSource,
    DeletePolicy,
    Lookup,
    LookupStatus,
    ResourceGateway,
)
from resources.registry import (
    ResourceRegistry,
    get_registry,
    register_builtin_resources,
    reset_registry,
)

__all__ = [
    "DataSource",
    "DeletePolicy",
    "Lookup",
    "LookupStatus",
    "ResourceGateway",
    "ResourceRegistry",
    "get_registry",
    "register_builtin_resources",
    "reset_registry",
]
