"""
Terraform remote state bootstrap
Resolves which state backend resources to declare and reconciles them with Pulumi
"""

from .errors import BootstrapError, GraphError, InvalidConfig
from .graph import ResourceGraph, ResourceKind, ResourceSpec
from .outputs import ABSENT, UNKNOWN, backend_config, migration_commands, project_outputs
from .resolver import Resolution, resolve
from .validation import Configuration, LockingMode, validate_config

__all__ = [
    "ABSENT",
    "UNKNOWN",
    "BootstrapError",
    "Configuration",
    "GraphError",
    "InvalidConfig",
    "LockingMode",
    "Resolution",
    "ResourceGraph",
    "ResourceKind",
    "ResourceSpec",
    "backend_config",
    "migration_commands",
    "project_outputs",
    "resolve",
    "validate_config",
]
