"""
Optional feature composition
Adds read-only lookups of pre-existing Datadog/Opsgenie resources and grants
the GitHub Actions role access to exactly those resources
"""

import pulumi

from .errors import InvalidConfig
from .graph import ResourceGraph, ResourceKind, ResourceSpec
from .naming import DATADOG_POLICY_ATTACHMENT_NAME, ResourceNames
from .validation import Configuration

DATADOG_ROLE_LOOKUP = "datadog_integration_role"
DATADOG_POLICY_LOOKUP = "datadog_integration_policy"
OPSGENIE_SECRET_LOOKUP = "opsgenie_api_key"
DATADOG_SECRET_LOOKUP = "datadog_api_keys"
DATADOG_READ_ACCESS = "datadog_read_access"

# Actions granted per lookup type
LOOKUP_ACTIONS = {
    "iam_role": ["iam:GetRole"],
    "iam_policy": ["iam:GetPolicy", "iam:GetPolicyVersion"],
    "secretsmanager_secret": ["secretsmanager:GetSecretValue", "secretsmanager:DescribeSecret"],
}


def compose_features(graph: ResourceGraph, config: Configuration, names: ResourceNames) -> ResourceGraph:
    """
    Merge optional feature blocks into a copy of the base graph

    Raises:
        InvalidConfig: Datadog permissions requested without an OIDC role to attach them to
    """
    composed = graph.copy()
    if not config.enable_datadog_permissions:
        return composed

    role = composed.find(ResourceKind.IAM_ROLE)
    if not config.enable_github_oidc or role is None:
        raise InvalidConfig(
            "enable_datadog_permissions",
            "requires enable_github_oidc, there is no GitHub Actions role to grant permissions to",
        )

    lookups = [
        (DATADOG_ROLE_LOOKUP, "iam_role", names.datadog_integration_role),
        (DATADOG_POLICY_LOOKUP, "iam_policy", names.datadog_integration_policy),
        (OPSGENIE_SECRET_LOOKUP, "secretsmanager_secret", names.opsgenie_api_key_secret),
        (DATADOG_SECRET_LOOKUP, "secretsmanager_secret", names.datadog_api_keys_secret),
    ]
    for logical_name, lookup_type, lookup_name in lookups:
        composed.add(ResourceSpec(
            kind=ResourceKind.DATA_LOOKUP,
            name=logical_name,
            attributes={"type": lookup_type, "lookup_name": lookup_name},
        ))

    statements = []
    for lookup_type, actions in LOOKUP_ACTIONS.items():
        resources = [name for name, kind, _ in lookups if kind == lookup_type]
        statements.append({"actions": list(actions), "resources": resources})

    composed.add(ResourceSpec(
        kind=ResourceKind.POLICY_ATTACHMENT,
        name=DATADOG_READ_ACCESS,
        attributes={
            "name": DATADOG_POLICY_ATTACHMENT_NAME,
            "role": role.name,
            "statements": statements,
        },
        depends_on=(role.name,) + tuple(name for name, _, _ in lookups),
    ))
    pulumi.log.info(f"Granting {names.github_actions_role} read access to "
                    f"{', '.join(lookup_name for _, _, lookup_name in lookups)}")
    return composed
