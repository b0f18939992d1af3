"""
IAM Module
GitHub Actions OIDC trust and read-only grants
"""

from .functions import (
    create_actions_role,
    create_oidc_provider,
    create_policy_attachment,
    lookup_existing,
)

__all__ = [
    "create_actions_role",
    "create_oidc_provider",
    "create_policy_attachment",
    "lookup_existing",
]
