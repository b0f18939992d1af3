"""
Naming resolver
Derives concrete resource names from the configuration
"""

from dataclasses import dataclass
from typing import Optional

import pulumi

from .validation import (
    Configuration,
    DEFAULT_DATADOG_API_KEYS_SECRET_NAME,
    DEFAULT_DATADOG_INTEGRATION_POLICY_NAME,
    DEFAULT_DATADOG_INTEGRATION_ROLE_NAME,
    DEFAULT_GITHUB_ACTIONS_ROLE_NAME,
    DEFAULT_KMS_KEY_ALIAS,
    DEFAULT_OPSGENIE_API_KEY_SECRET_NAME,
)

LOCK_TABLE_NAME = "terraform"
DATADOG_POLICY_ATTACHMENT_NAME = "datadog-integration-read"


@dataclass(frozen=True)
class ResourceNames:
    bucket: str
    kms_key_alias: str
    lock_table: Optional[str]
    github_actions_role: str
    datadog_integration_role: str
    datadog_integration_policy: str
    opsgenie_api_key_secret: str
    datadog_api_keys_secret: str


def default_bucket_name(account_id: str) -> str:
    return f"terraform-state-{account_id}"


def resolve_names(config: Configuration) -> ResourceNames:
    """Compute resource names, using overrides where they are non-empty"""
    if config.state_bucket_name:
        bucket = config.state_bucket_name
        if config.aws_account_id not in bucket:
            pulumi.log.warn(f"State bucket override '{bucket}' does not contain the account id; "
                            f"S3 bucket names are global and may already be taken")
    else:
        bucket = default_bucket_name(config.aws_account_id)

    names = ResourceNames(
        bucket=bucket,
        kms_key_alias=config.kms_key_alias or DEFAULT_KMS_KEY_ALIAS,
        lock_table=LOCK_TABLE_NAME if config.enable_dynamodb_locking else None,
        github_actions_role=config.github_actions_role_name or DEFAULT_GITHUB_ACTIONS_ROLE_NAME,
        datadog_integration_role=config.datadog_integration_role_name or DEFAULT_DATADOG_INTEGRATION_ROLE_NAME,
        datadog_integration_policy=config.datadog_integration_policy_name or DEFAULT_DATADOG_INTEGRATION_POLICY_NAME,
        opsgenie_api_key_secret=config.opsgenie_api_key_secret_name or DEFAULT_OPSGENIE_API_KEY_SECRET_NAME,
        datadog_api_keys_secret=config.datadog_api_keys_secret_name or DEFAULT_DATADOG_API_KEYS_SECRET_NAME,
    )
    pulumi.log.info(f"State bucket: {names.bucket}, key alias: {names.kms_key_alias}, "
                    f"lock table: {names.lock_table or 'none (S3 native locking)'}")
    return names
