"""
Resource graph builder
Declares the always-present state storage subgraph and the optional
lock table and GitHub Actions OIDC trust

The GitHub Actions role only gets a trust policy here. Access to the state
bucket, key and lock table must be granted to it outside this stack.
"""

import re
from typing import Any, Dict

import pulumi

from .errors import InvalidConfig
from .graph import ResourceGraph, ResourceKind, ResourceSpec
from .naming import ResourceNames
from .validation import Configuration

# Logical names
KMS_KEY = "kms_key"
STATE_BUCKET = "state_bucket"
LOCK_TABLE = "lock_table"
OIDC_PROVIDER = "github_oidc_provider"
ACTIONS_ROLE = "github_actions_role"

GITHUB_OIDC_HOST = "token.actions.githubusercontent.com"
GITHUB_OIDC_URL = f"https://{GITHUB_OIDC_HOST}"
GITHUB_OIDC_AUDIENCE = "sts.amazonaws.com"
# Published GitHub Actions certificate thumbprints
GITHUB_OIDC_THUMBPRINTS = [
    "6938fd4d98bab03faadb97b34396831e3780aea1",
    "1c58a3a8518e8759bf075b76b750d4f2df264fcd",
]

OIDC_REPO_PATTERN = re.compile(
    r"^(?P<owner>[A-Za-z0-9][A-Za-z0-9-]*)/(?P<repo>[A-Za-z0-9._*?-]+):(?P<filter>\S+)$"
)

BASE_TAGS = {
    "ManagedBy": "pulumi",
    "Purpose": "terraform-state-backend",
}


def partition_for_region(region: str) -> str:
    if region.startswith("cn-"):
        return "aws-cn"
    if region.startswith("us-gov-"):
        return "aws-us-gov"
    return "aws"


def subject_pattern(oidc_repo: str) -> str:
    """
    Turn an 'owner/repo:filter' setting into the token subject pattern

    Raises:
        InvalidConfig: when the setting is not of the form owner/repo:filter
    """
    repo = oidc_repo[len("repo:"):] if oidc_repo.startswith("repo:") else oidc_repo
    if not OIDC_REPO_PATTERN.match(repo):
        raise InvalidConfig("oidc_repo", f"must match 'owner/repo:filter' (e.g. 'myorg/myrepo:*'), got '{oidc_repo}'")
    return f"repo:{repo}"


def subject_matches(pattern: str, subject: str) -> bool:
    """StringLike semantics: '*' matches any run of characters, '?' exactly one"""
    regex = "".join(
        ".*" if ch == "*" else "." if ch == "?" else re.escape(ch)
        for ch in pattern
    )
    return re.fullmatch(regex, subject, flags=re.DOTALL) is not None


def tls_only_policy(bucket_arn: str) -> Dict[str, Any]:
    return {
        "Version": "2012-10-17",
        "Statement": [{
            "Sid": "DenyInsecureTransport",
            "Effect": "Deny",
            "Principal": "*",
            "Action": "s3:*",
            "Resource": [bucket_arn, f"{bucket_arn}/*"],
            "Condition": {"Bool": {"aws:SecureTransport": "false"}},
        }],
    }


def github_trust_policy(provider_arn: str, subject: str) -> Dict[str, Any]:
    return {
        "Version": "2012-10-17",
        "Statement": [{
            "Effect": "Allow",
            "Principal": {"Federated": provider_arn},
            "Action": "sts:AssumeRoleWithWebIdentity",
            "Condition": {
                "StringEquals": {f"{GITHUB_OIDC_HOST}:aud": GITHUB_OIDC_AUDIENCE},
                "StringLike": {f"{GITHUB_OIDC_HOST}:sub": subject},
            },
        }],
    }


def _tags(config: Configuration, name: str) -> Dict[str, str]:
    return {**BASE_TAGS, **config.tag_map, "Name": name}


def build_base_graph(config: Configuration, names: ResourceNames) -> ResourceGraph:
    """
    Build the state storage graph and the optional lock table and OIDC role

    Args:
        config: Validated configuration
        names: Resolved resource names

    Returns:
        ResourceGraph with explicit dependency edges

    Raises:
        InvalidConfig: when OIDC is enabled but the role cannot be declared
    """
    partition = partition_for_region(config.region)
    graph = ResourceGraph()

    graph.add(ResourceSpec(
        kind=ResourceKind.ENCRYPTION_KEY,
        name=KMS_KEY,
        attributes={
            "alias": names.kms_key_alias,
            "description": f"Encryption key for Terraform state in {names.bucket}",
            "enable_key_rotation": True,
            "deletion_window_in_days": 30,
            "tags": _tags(config, names.kms_key_alias[len("alias/"):]),
        },
    ))

    bucket_arn = f"arn:{partition}:s3:::{names.bucket}"
    # The bucket must never exist without its key, hence the hard edge
    graph.add(ResourceSpec(
        kind=ResourceKind.BUCKET,
        name=STATE_BUCKET,
        attributes={
            "bucket": names.bucket,
            "arn": bucket_arn,
            "versioning": True,
            "encryption": {
                "sse_algorithm": "aws:kms",
                "kms_key": KMS_KEY,
                "bucket_key_enabled": True,
            },
            "public_access_block": {
                "block_public_acls": True,
                "block_public_policy": True,
                "ignore_public_acls": True,
                "restrict_public_buckets": True,
            },
            "policy": tls_only_policy(bucket_arn),
            "lifecycle": {
                "noncurrent_version_expiration_days": 90,
                "abort_incomplete_multipart_upload_days": 1,
            },
            "tags": _tags(config, names.bucket),
        },
        depends_on=(KMS_KEY,),
    ))

    if names.lock_table:
        graph.add(ResourceSpec(
            kind=ResourceKind.LOCK_TABLE,
            name=LOCK_TABLE,
            attributes={
                "name": names.lock_table,
                "billing_mode": "PAY_PER_REQUEST",
                "hash_key": "LockID",
                "server_side_encryption": True,
                "tags": _tags(config, names.lock_table),
            },
        ))

    if config.enable_github_oidc:
        subject = subject_pattern(config.oidc_repo)
        provider_arn = f"arn:{partition}:iam::{config.aws_account_id}:oidc-provider/{GITHUB_OIDC_HOST}"
        graph.add(ResourceSpec(
            kind=ResourceKind.OIDC_PROVIDER,
            name=OIDC_PROVIDER,
            attributes={
                "url": GITHUB_OIDC_URL,
                "client_ids": [GITHUB_OIDC_AUDIENCE],
                "thumbprints": list(GITHUB_OIDC_THUMBPRINTS),
                "arn": provider_arn,
                "tags": _tags(config, "github-actions-oidc"),
            },
        ))
        graph.add(ResourceSpec(
            kind=ResourceKind.IAM_ROLE,
            name=ACTIONS_ROLE,
            attributes={
                "name": names.github_actions_role,
                "arn": f"arn:{partition}:iam::{config.aws_account_id}:role/{names.github_actions_role}",
                "description": f"Assumed by GitHub Actions workflows of {subject}",
                "assume_role_policy": github_trust_policy(provider_arn, subject),
                "subject": subject,
                "max_session_duration": 3600,
                "tags": _tags(config, names.github_actions_role),
            },
            depends_on=(OIDC_PROVIDER,),
        ))

    for spec in graph:
        pulumi.log.debug(f"Declared {spec.kind.value} '{spec.name}' depends on {list(spec.depends_on)}")
    return graph
