"""
Input validation
Turns the raw stack configuration into an immutable Configuration
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

import pulumi

from .errors import InvalidConfig

ACCOUNT_ID_PATTERN = re.compile(r"^\d{12}$")

DEFAULT_KMS_KEY_ALIAS = "alias/tfstate"
DEFAULT_DATADOG_INTEGRATION_ROLE_NAME = "DatadogAWSIntegrationRole"
DEFAULT_DATADOG_INTEGRATION_POLICY_NAME = "DatadogAWSIntegrationPolicy"
DEFAULT_OPSGENIE_API_KEY_SECRET_NAME = "opsgenie/api-key"
DEFAULT_DATADOG_API_KEYS_SECRET_NAME = "datadog/api-keys"
DEFAULT_GITHUB_ACTIONS_ROLE_NAME = "github-actions-terraform"

# Fields that must be non-empty when Datadog permissions are requested
DATADOG_NAME_FIELDS = (
    "datadog_integration_role_name",
    "datadog_integration_policy_name",
    "opsgenie_api_key_secret_name",
    "datadog_api_keys_secret_name",
)


class LockingMode(str, Enum):
    S3_NATIVE = "s3-native"
    DYNAMODB = "dynamodb"


@dataclass(frozen=True)
class Configuration:
    aws_account_id: str
    region: str
    oidc_repo: str = ""
    locking_mode: LockingMode = LockingMode.S3_NATIVE
    state_bucket_name: Optional[str] = None
    kms_key_alias: str = DEFAULT_KMS_KEY_ALIAS
    enable_github_oidc: bool = True
    enable_datadog_permissions: bool = False
    datadog_integration_role_name: str = DEFAULT_DATADOG_INTEGRATION_ROLE_NAME
    datadog_integration_policy_name: str = DEFAULT_DATADOG_INTEGRATION_POLICY_NAME
    opsgenie_api_key_secret_name: str = DEFAULT_OPSGENIE_API_KEY_SECRET_NAME
    datadog_api_keys_secret_name: str = DEFAULT_DATADOG_API_KEYS_SECRET_NAME
    github_actions_role_name: str = DEFAULT_GITHUB_ACTIONS_ROLE_NAME
    tags: Tuple[Tuple[str, str], ...] = ()

    @property
    def tag_map(self) -> Dict[str, str]:
        return dict(self.tags)

    @property
    def enable_dynamodb_locking(self) -> bool:
        return self.locking_mode is LockingMode.DYNAMODB


def _string(raw: Mapping[str, Any], name: str, default: str = "") -> str:
    value = raw.get(name)
    if value is None:
        return default
    if not isinstance(value, str):
        raise InvalidConfig(name, f"must be a string, got {type(value).__name__}")
    return value.strip()


def _flag(raw: Mapping[str, Any], name: str, default: bool) -> bool:
    value = raw.get(name)
    if value is None:
        return default
    if not isinstance(value, bool):
        raise InvalidConfig(name, f"must be a boolean, got {value!r}")
    return value


def _name_override(raw: Mapping[str, Any], name: str, default: str) -> str:
    # A key that is present but blank stays blank so it can be rejected below
    if name not in raw or raw[name] is None:
        return default
    return _string(raw, name)


def validate_config(raw: Mapping[str, Any]) -> Configuration:
    """
    Validate and normalize a raw configuration mapping

    Args:
        raw: Mapping using the stack configuration key names

    Returns:
        Normalized Configuration

    Raises:
        InvalidConfig: naming the offending field and the violated constraint
    """
    account_id = _string(raw, "aws_account_id")
    if not account_id:
        raise InvalidConfig("aws_account_id", "must not be empty")
    if not ACCOUNT_ID_PATTERN.match(account_id):
        raise InvalidConfig("aws_account_id", f"must be a 12 digit AWS account id, got '{account_id}'")

    region = _string(raw, "region")
    if not region:
        raise InvalidConfig("region", "must not be empty")

    enable_github_oidc = _flag(raw, "enable_github_oidc", True)
    enable_datadog_permissions = _flag(raw, "enable_datadog_permissions", False)
    enable_dynamodb_locking = _flag(raw, "enable_dynamodb_locking", False)

    oidc_repo = _string(raw, "oidc_repo")
    if enable_github_oidc and not oidc_repo:
        raise InvalidConfig("oidc_repo", "must not be empty when enable_github_oidc is true")

    kms_key_alias = _string(raw, "kms_key_alias") or DEFAULT_KMS_KEY_ALIAS
    if not kms_key_alias.startswith("alias/") or kms_key_alias == "alias/":
        raise InvalidConfig("kms_key_alias", f"must look like 'alias/<name>', got '{kms_key_alias}'")

    names = {
        "datadog_integration_role_name": _name_override(
            raw, "datadog_integration_role_name", DEFAULT_DATADOG_INTEGRATION_ROLE_NAME),
        "datadog_integration_policy_name": _name_override(
            raw, "datadog_integration_policy_name", DEFAULT_DATADOG_INTEGRATION_POLICY_NAME),
        "opsgenie_api_key_secret_name": _name_override(
            raw, "opsgenie_api_key_secret_name", DEFAULT_OPSGENIE_API_KEY_SECRET_NAME),
        "datadog_api_keys_secret_name": _name_override(
            raw, "datadog_api_keys_secret_name", DEFAULT_DATADOG_API_KEYS_SECRET_NAME),
    }
    if enable_datadog_permissions:
        for name in DATADOG_NAME_FIELDS:
            if not names[name]:
                raise InvalidConfig(name, "must not be empty when enable_datadog_permissions is true")

    tags = raw.get("tags") or {}
    if not isinstance(tags, Mapping):
        raise InvalidConfig("tags", "must be a mapping of tag name to value")

    config = Configuration(
        aws_account_id=account_id,
        region=region,
        oidc_repo=oidc_repo,
        locking_mode=LockingMode.DYNAMODB if enable_dynamodb_locking else LockingMode.S3_NATIVE,
        state_bucket_name=_string(raw, "state_bucket_name") or None,
        kms_key_alias=kms_key_alias,
        enable_github_oidc=enable_github_oidc,
        enable_datadog_permissions=enable_datadog_permissions,
        github_actions_role_name=_string(raw, "github_actions_role_name") or DEFAULT_GITHUB_ACTIONS_ROLE_NAME,
        tags=tuple(sorted((str(k), str(v)) for k, v in tags.items())),
        **names,
    )
    pulumi.log.debug(f"Validated configuration for account {account_id} in {region} "
                     f"(locking: {config.locking_mode.value})")
    return config
