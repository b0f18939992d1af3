"""
Configuration management for the state backend bootstrap
"""

import pulumi
import pulumi_aws as aws
from typing import Any, Dict


class Config:
    """Stack configuration for the bootstrap"""

    def __init__(self):
        self.config = pulumi.Config()
        aws_config = pulumi.Config("aws")

        # AWS Configuration
        self.aws_account_id = self.config.get("aws_account_id") or ""
        self.region = self.config.get("region") or aws_config.get("region") or ""

        # Features
        self.enable_dynamodb_locking = self._get_bool("enable_dynamodb_locking", False)
        self.enable_github_oidc = self._get_bool("enable_github_oidc", True)
        self.enable_datadog_permissions = self._get_bool("enable_datadog_permissions", False)

        # GitHub Actions
        self.oidc_repo = self.config.get("oidc_repo") or ""
        self.github_actions_role_name = self.config.get("github_actions_role_name")

        # Naming overrides, empty means derived or default
        self.state_bucket_name = self.config.get("state_bucket_name") or ""
        self.kms_key_alias = self.config.get("kms_key_alias")
        self.datadog_integration_role_name = self.config.get("datadog_integration_role_name")
        self.datadog_integration_policy_name = self.config.get("datadog_integration_policy_name")
        self.opsgenie_api_key_secret_name = self.config.get("opsgenie_api_key_secret_name")
        self.datadog_api_keys_secret_name = self.config.get("datadog_api_keys_secret_name")

        # Backend
        self.state_key = self.config.get("state_key") or "terraform.tfstate"

        # Additional tags
        self.additional_tags = self.config.get_object("tags") or {}

    def _get_bool(self, key: str, default: bool) -> bool:
        value = self.config.get_bool(key)
        return default if value is None else value

    @property
    def common_tags(self) -> Dict[str, str]:
        """Get common tags for all resources"""
        base_tags = {
            "Project": "terraform-state-backend",
            "ManagedBy": "pulumi",
        }
        base_tags.update(self.additional_tags)
        return base_tags

    def resolve_account_id(self) -> str:
        """Configured account id, falling back to the caller identity"""
        if not self.aws_account_id:
            self.aws_account_id = aws.get_caller_identity().account_id
            pulumi.log.info(f"aws_account_id not set, using caller identity {self.aws_account_id}")
        return self.aws_account_id

    def as_raw(self) -> Dict[str, Any]:
        """Raw configuration mapping consumed by the validator"""
        return {
            "aws_account_id": self.aws_account_id,
            "region": self.region,
            "oidc_repo": self.oidc_repo,
            "enable_dynamodb_locking": self.enable_dynamodb_locking,
            "state_bucket_name": self.state_bucket_name,
            "kms_key_alias": self.kms_key_alias,
            "enable_github_oidc": self.enable_github_oidc,
            "enable_datadog_permissions": self.enable_datadog_permissions,
            "datadog_integration_role_name": self.datadog_integration_role_name,
            "datadog_integration_policy_name": self.datadog_integration_policy_name,
            "opsgenie_api_key_secret_name": self.opsgenie_api_key_secret_name,
            "datadog_api_keys_secret_name": self.datadog_api_keys_secret_name,
            "github_actions_role_name": self.github_actions_role_name,
            "tags": self.common_tags,
        }


def get_config() -> Config:
    """Get the configuration for the current stack"""
    return Config()
