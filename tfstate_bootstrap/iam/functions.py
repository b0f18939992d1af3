"""
IAM Functions
Creates the GitHub Actions OIDC provider, its role and the read-only grants,
and looks up the pre-existing Datadog/Opsgenie resources
"""

import json
from typing import Dict

import pulumi
import pulumi_aws as aws

from ..builder import github_trust_policy
from ..graph import ResourceSpec
from ..state_storage.functions import resource_name


def create_oidc_provider(spec: ResourceSpec, opts: pulumi.ResourceOptions = None) -> Dict[str, any]:
    """
    Create the GitHub Actions OpenID Connect provider

    Args:
        spec: OidcProvider spec
        opts: Pulumi resource options

    Returns:
        Dict with provider resource and outputs
    """
    attrs = spec.plain_attributes()

    provider = aws.iam.OpenIdConnectProvider(
        resource_name(spec),
        url=attrs["url"],
        client_id_lists=attrs["client_ids"],
        thumbprint_lists=attrs["thumbprints"],
        tags=attrs["tags"],
        opts=opts
    )

    return {
        "arn": provider.arn,
        "_resource": provider
    }


def create_actions_role(spec: ResourceSpec,
                        provider_arn: 'pulumi.Output[str]',
                        opts: pulumi.ResourceOptions = None) -> Dict[str, any]:
    """
    Create the role GitHub Actions assumes with web identity

    Args:
        spec: IamRole spec
        provider_arn: ARN of the OIDC provider trusted by the role
        opts: Pulumi resource options carrying the dependency on the provider

    Returns:
        Dict with role resource and outputs
    """
    attrs = spec.plain_attributes()
    subject = attrs["subject"]

    role = aws.iam.Role(
        resource_name(spec),
        name=attrs["name"],
        description=attrs["description"],
        assume_role_policy=pulumi.Output.from_input(provider_arn).apply(
            lambda arn: json.dumps(github_trust_policy(arn, subject))
        ),
        max_session_duration=attrs["max_session_duration"],
        tags=attrs["tags"],
        opts=opts
    )

    return {
        "name": role.name,
        "arn": role.arn,
        "_resource": role
    }


def lookup_existing(spec: ResourceSpec) -> Dict[str, any]:
    """
    Look up a pre-existing resource, nothing is created

    Args:
        spec: DataLookup spec

    Returns:
        Dict with the looked-up ARN
    """
    lookup_type = spec.attributes["type"]
    lookup_name = spec.attributes["lookup_name"]

    if lookup_type == "iam_role":
        result = aws.iam.get_role_output(name=lookup_name)
    elif lookup_type == "iam_policy":
        result = aws.iam.get_policy_output(name=lookup_name)
    elif lookup_type == "secretsmanager_secret":
        result = aws.secretsmanager.get_secret_output(name=lookup_name)
    else:
        raise ValueError(f"Unsupported lookup type '{lookup_type}' for {spec.name}")

    return {
        "name": lookup_name,
        "arn": result.arn
    }


def create_policy_attachment(spec: ResourceSpec,
                             resolved: Dict[str, Dict[str, any]],
                             opts: pulumi.ResourceOptions = None) -> Dict[str, any]:
    """
    Attach an inline policy scoped to the ARNs of already resolved resources

    Args:
        spec: PolicyAttachment spec
        resolved: Reconciled attributes keyed by logical name
        opts: Pulumi resource options

    Returns:
        Dict with policy resource
    """
    attrs = spec.plain_attributes()
    statements = attrs["statements"]
    arns = {
        name: resolved[name]["arn"]
        for statement in statements
        for name in statement["resources"]
    }

    policy = aws.iam.RolePolicy(
        resource_name(spec),
        name=attrs["name"],
        role=resolved[attrs["role"]]["name"],
        policy=pulumi.Output.all(**arns).apply(lambda args: json.dumps({
            "Version": "2012-10-17",
            "Statement": [
                {
                    "Effect": "Allow",
                    "Action": statement["actions"],
                    "Resource": [args[name] for name in statement["resources"]]
                }
                for statement in statements
            ]
        })),
        opts=opts
    )

    return {
        "name": policy.name,
        "_resource": policy
    }
