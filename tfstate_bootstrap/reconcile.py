"""
Reconciliation with Pulumi
Walks the resolved graph in dependency order and declares each node with pulumi_aws
"""

from typing import Dict, List

import pulumi

from .graph import ResourceGraph, ResourceKind, ResourceSpec
from .iam import create_actions_role, create_oidc_provider, create_policy_attachment, lookup_existing
from .state_storage import create_encryption_key, create_lock_table, create_state_bucket


def _depends_on(spec: ResourceSpec, resolved: Dict[str, Dict[str, any]]) -> List[pulumi.Resource]:
    # Lookups are not resources, the engine orders them through their outputs
    return [
        resolved[dep]["_resource"]
        for dep in spec.depends_on
        if resolved[dep].get("_resource") is not None
    ]


def reconcile(graph: ResourceGraph) -> Dict[str, Dict[str, any]]:
    """
    Declare every node of the graph with Pulumi

    Args:
        graph: Validated resource graph

    Returns:
        Reconciled attributes keyed by logical name
    """
    resolved: Dict[str, Dict[str, any]] = {}

    for spec in graph.topological_order():
        opts = pulumi.ResourceOptions(depends_on=_depends_on(spec, resolved))

        if spec.kind is ResourceKind.ENCRYPTION_KEY:
            result = create_encryption_key(spec, opts)
        elif spec.kind is ResourceKind.BUCKET:
            key_name = spec.attributes["encryption"]["kms_key"]
            result = create_state_bucket(spec, resolved[key_name]["arn"], opts)
        elif spec.kind is ResourceKind.LOCK_TABLE:
            result = create_lock_table(spec, opts)
        elif spec.kind is ResourceKind.OIDC_PROVIDER:
            result = create_oidc_provider(spec, opts)
        elif spec.kind is ResourceKind.IAM_ROLE:
            (provider_name,) = spec.depends_on
            result = create_actions_role(spec, resolved[provider_name]["arn"], opts)
        elif spec.kind is ResourceKind.DATA_LOOKUP:
            result = lookup_existing(spec)
        elif spec.kind is ResourceKind.POLICY_ATTACHMENT:
            result = create_policy_attachment(spec, resolved, opts)
        else:
            raise ValueError(f"No reconciler for {spec.kind.value} '{spec.name}'")

        resolved[spec.name] = result
        verb = "Looking up" if spec.is_lookup else "Declared"
        pulumi.log.info(f"{verb} {spec.kind.value} {spec.name}")

    return resolved
