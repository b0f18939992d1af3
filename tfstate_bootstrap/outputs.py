"""
Output projection
Maps the resource graph onto the published stack outputs
"""

from typing import Any, Dict, List, Mapping, Optional

import pulumi

from .builder import ACTIONS_ROLE, KMS_KEY, LOCK_TABLE, OIDC_PROVIDER, STATE_BUCKET
from .graph import ResourceGraph


class _Unknown:
    """Value the reconciliation engine has not produced yet"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "UNKNOWN"

    def __bool__(self) -> bool:
        return False


UNKNOWN = _Unknown()
ABSENT = None

# output name -> (logical name, attribute)
OUTPUTS = {
    "tf_state_bucket_name": (STATE_BUCKET, "bucket"),
    "tf_state_bucket_arn": (STATE_BUCKET, "arn"),
    "tf_kms_key_arn": (KMS_KEY, "arn"),
    "tf_dynamodb_table_name": (LOCK_TABLE, "name"),
    "github_actions_role_arn": (ACTIONS_ROLE, "arn"),
    "github_oidc_provider_arn": (OIDC_PROVIDER, "arn"),
}

DEFAULT_STATE_KEY = "terraform.tfstate"


def _attribute(graph: ResourceGraph,
               resolved: Mapping[str, Mapping[str, Any]],
               name: str,
               attribute: str) -> Any:
    if name not in graph:
        return ABSENT
    if attribute in resolved.get(name, {}):
        return resolved[name][attribute]
    return graph.get(name).attributes.get(attribute, UNKNOWN)


def project_outputs(graph: ResourceGraph,
                    resolved: Optional[Mapping[str, Mapping[str, Any]]] = None) -> Dict[str, Any]:
    """
    Project the six published outputs

    Args:
        graph: Final resource graph
        resolved: Attributes produced by reconciliation, keyed by logical name

    Returns:
        Output name -> value, None for resources that were not declared
    """
    resolved = resolved or {}
    return {
        output: _attribute(graph, resolved, name, attribute)
        for output, (name, attribute) in OUTPUTS.items()
    }


def backend_config(graph: ResourceGraph,
                   region: str,
                   state_key: str = DEFAULT_STATE_KEY,
                   resolved: Optional[Mapping[str, Mapping[str, Any]]] = None) -> Dict[str, Any]:
    """Backend block for the second bootstrap phase"""
    outputs = project_outputs(graph, resolved)
    config = {
        "bucket": outputs["tf_state_bucket_name"],
        "key": state_key,
        "region": region,
        "encrypt": True,
        "kms_key_id": outputs["tf_kms_key_arn"],
    }
    if outputs["tf_dynamodb_table_name"] is ABSENT:
        config["use_lockfile"] = True
    else:
        config["dynamodb_table"] = outputs["tf_dynamodb_table_name"]
    return config


def _kms_key_id_line(kms_key_arn: Any) -> Any:
    prefix = "  -backend-config=kms_key_id="
    if kms_key_arn is UNKNOWN:
        return f"{prefix}$(pulumi stack output tf_kms_key_arn) \\"
    if isinstance(kms_key_arn, str):
        return f"{prefix}{kms_key_arn} \\"
    return pulumi.Output.concat(prefix, kms_key_arn, " \\")


def migration_commands(graph: ResourceGraph,
                       region: str,
                       state_key: str = DEFAULT_STATE_KEY,
                       resolved: Optional[Mapping[str, Mapping[str, Any]]] = None) -> List[Any]:
    """
    Commands that move the local bootstrap state into the new backend

    The kms_key_id line is a pulumi Output once the key has been reconciled
    """
    bucket = graph.get(STATE_BUCKET).attributes["bucket"]
    kms_key_arn = project_outputs(graph, resolved)["tf_kms_key_arn"]
    commands = [
        "# 1. Add an empty backend block to the Terraform configuration:",
        '#    terraform { backend "s3" {} }',
        "",
        "# 2. Migrate local state into the new backend:",
        "terraform init -migrate-state \\",
        f"  -backend-config=bucket={bucket} \\",
        f"  -backend-config=key={state_key} \\",
        f"  -backend-config=region={region} \\",
        "  -backend-config=encrypt=true \\",
        _kms_key_id_line(kms_key_arn),
    ]
    if LOCK_TABLE in graph:
        commands.append(f"  -backend-config=dynamodb_table={graph.get(LOCK_TABLE).attributes['name']}")
    else:
        commands.append("  -backend-config=use_lockfile=true")
    commands += [
        "",
        "# 3. Verify the state landed in the bucket:",
        f"aws s3 ls s3://{bucket}/{state_key}",
    ]
    return commands
