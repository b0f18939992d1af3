"""
Unit tests for the state backend resolver
Validation, naming, graph composition and output projection
"""

import unittest
import sys
import os

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tfstate_bootstrap import (
    ABSENT,
    UNKNOWN,
    InvalidConfig,
    LockingMode,
    ResourceKind,
    backend_config,
    migration_commands,
    resolve,
    validate_config,
)
from tfstate_bootstrap.builder import (
    ACTIONS_ROLE,
    KMS_KEY,
    LOCK_TABLE,
    OIDC_PROVIDER,
    STATE_BUCKET,
    subject_matches,
    subject_pattern,
)
from tfstate_bootstrap.features import DATADOG_READ_ACCESS
from tfstate_bootstrap.naming import resolve_names


def base_config(**overrides):
    raw = {
        "aws_account_id": "123456789012",
        "region": "eu-central-1",
        "oidc_repo": "myorg/myrepo:*",
        "enable_dynamodb_locking": False,
        "enable_github_oidc": True,
        "enable_datadog_permissions": False,
    }
    raw.update(overrides)
    return raw


class TestValidation(unittest.TestCase):
    """Input validator"""

    def assertInvalid(self, raw, field):
        with self.assertRaises(InvalidConfig) as ctx:
            validate_config(raw)
        self.assertEqual(ctx.exception.field, field)
        self.assertIn(field, str(ctx.exception))

    def test_defaults(self):
        config = validate_config({"aws_account_id": "123456789012", "region": "us-east-1", "oidc_repo": "a/b:*"})
        self.assertEqual(config.locking_mode, LockingMode.S3_NATIVE)
        self.assertEqual(config.kms_key_alias, "alias/tfstate")
        self.assertTrue(config.enable_github_oidc)
        self.assertFalse(config.enable_datadog_permissions)
        self.assertIsNone(config.state_bucket_name)

    def test_empty_account_id(self):
        self.assertInvalid(base_config(aws_account_id=""), "aws_account_id")
        self.assertInvalid(base_config(aws_account_id="   "), "aws_account_id")

    def test_malformed_account_id(self):
        self.assertInvalid(base_config(aws_account_id="12345"), "aws_account_id")

    def test_empty_region(self):
        self.assertInvalid(base_config(region=""), "region")

    def test_oidc_repo_required_when_oidc_enabled(self):
        self.assertInvalid(base_config(oidc_repo=""), "oidc_repo")

    def test_oidc_repo_optional_when_oidc_disabled(self):
        config = validate_config(base_config(oidc_repo="", enable_github_oidc=False))
        self.assertEqual(config.oidc_repo, "")

    def test_datadog_names_required_when_enabled(self):
        raw = base_config(enable_datadog_permissions=True, opsgenie_api_key_secret_name="")
        self.assertInvalid(raw, "opsgenie_api_key_secret_name")

    def test_blank_datadog_names_ignored_when_disabled(self):
        config = validate_config(base_config(datadog_api_keys_secret_name=""))
        self.assertEqual(resolve_names(config).datadog_api_keys_secret, "datadog/api-keys")

    def test_non_boolean_flag(self):
        self.assertInvalid(base_config(enable_dynamodb_locking="yes"), "enable_dynamodb_locking")

    def test_bad_kms_alias(self):
        self.assertInvalid(base_config(kms_key_alias="tfstate"), "kms_key_alias")

    def test_configuration_is_hashable(self):
        raw = base_config(tags={"Team": "platform", "Env": "prod"})
        first = validate_config(raw)
        second = validate_config(raw)
        self.assertEqual(hash(first), hash(second))
        self.assertEqual(first.tags, (("Env", "prod"), ("Team", "platform")))
        self.assertEqual(first.tag_map, {"Env": "prod", "Team": "platform"})
        first.tag_map["Team"] = "other"
        self.assertEqual(first.tag_map["Team"], "platform")

    def test_locking_mode_derived_from_flag(self):
        config = validate_config(base_config(enable_dynamodb_locking=True))
        self.assertEqual(config.locking_mode, LockingMode.DYNAMODB)
        self.assertTrue(config.enable_dynamodb_locking)


class TestNaming(unittest.TestCase):
    """Naming resolver"""

    def test_default_bucket_name(self):
        names = resolve_names(validate_config(base_config()))
        self.assertEqual(names.bucket, "terraform-state-123456789012")
        self.assertIsNone(names.lock_table)

    def test_bucket_override(self):
        names = resolve_names(validate_config(base_config(state_bucket_name="acme-123456789012-tfstate")))
        self.assertEqual(names.bucket, "acme-123456789012-tfstate")

    def test_lock_table_name_is_fixed(self):
        names = resolve_names(validate_config(base_config(enable_dynamodb_locking=True)))
        self.assertEqual(names.lock_table, "terraform")

    def test_overrides_fall_back_to_defaults(self):
        names = resolve_names(validate_config(base_config(kms_key_alias="", github_actions_role_name="")))
        self.assertEqual(names.kms_key_alias, "alias/tfstate")
        self.assertEqual(names.github_actions_role, "github-actions-terraform")
        self.assertEqual(names.datadog_integration_role, "DatadogAWSIntegrationRole")
        self.assertEqual(names.datadog_integration_policy, "DatadogAWSIntegrationPolicy")


class TestGraph(unittest.TestCase):
    """Resource graph builder and feature composer"""

    def test_example_without_locking(self):
        resolution = resolve(base_config())
        graph = resolution.graph
        self.assertEqual(
            sorted(spec.name for spec in graph),
            sorted([KMS_KEY, STATE_BUCKET, OIDC_PROVIDER, ACTIONS_ROLE]),
        )
        self.assertEqual(graph.get(STATE_BUCKET).depends_on, (KMS_KEY,))
        self.assertEqual(graph.get(ACTIONS_ROLE).depends_on, (OIDC_PROVIDER,))
        self.assertEqual(graph.get(KMS_KEY).depends_on, ())
        self.assertEqual(resolution.outputs["tf_state_bucket_name"], "terraform-state-123456789012")
        self.assertIs(resolution.outputs["tf_dynamodb_table_name"], ABSENT)

    def test_example_with_locking(self):
        resolution = resolve(base_config(enable_dynamodb_locking=True))
        table = resolution.graph.get(LOCK_TABLE)
        self.assertIs(table.kind, ResourceKind.LOCK_TABLE)
        self.assertEqual(table.attributes["name"], "terraform")
        self.assertEqual(table.depends_on, ())
        self.assertEqual(resolution.outputs["tf_dynamodb_table_name"], "terraform")

    def test_no_lock_table_without_dynamodb_locking(self):
        for oidc in (True, False):
            with self.subTest(enable_github_oidc=oidc):
                resolution = resolve(base_config(enable_github_oidc=oidc))
                self.assertNotIn(ResourceKind.LOCK_TABLE, resolution.graph.kinds())
                self.assertIsNone(resolution.outputs["tf_dynamodb_table_name"])

    def test_bucket_always_depends_on_key(self):
        combinations = [
            {"enable_dynamodb_locking": True},
            {"enable_github_oidc": False},
            {"enable_datadog_permissions": True},
            {"state_bucket_name": "custom-123456789012"},
        ]
        for overrides in combinations:
            with self.subTest(**overrides):
                graph = resolve(base_config(**overrides)).graph
                self.assertIn(KMS_KEY, graph.get(STATE_BUCKET).depends_on)
                order = [spec.name for spec in graph.topological_order()]
                self.assertLess(order.index(KMS_KEY), order.index(STATE_BUCKET))

    def test_bucket_hardening(self):
        bucket = resolve(base_config()).graph.get(STATE_BUCKET)
        self.assertTrue(bucket.attributes["versioning"])
        self.assertTrue(all(bucket.attributes["public_access_block"].values()))
        self.assertEqual(bucket.attributes["encryption"]["kms_key"], KMS_KEY)
        statement = bucket.attributes["policy"]["Statement"][0]
        self.assertEqual(statement["Effect"], "Deny")
        self.assertEqual(statement["Condition"], {"Bool": {"aws:SecureTransport": "false"}})

    def test_oidc_disabled(self):
        resolution = resolve(base_config(enable_github_oidc=False))
        self.assertIsNone(resolution.outputs["github_actions_role_arn"])
        self.assertIsNone(resolution.outputs["github_oidc_provider_arn"])
        self.assertNotIn(ResourceKind.IAM_ROLE, resolution.graph.kinds())

    def test_datadog_without_oidc_fails(self):
        with self.assertRaises(InvalidConfig) as ctx:
            resolve(base_config(enable_github_oidc=False, enable_datadog_permissions=True))
        self.assertEqual(ctx.exception.field, "enable_datadog_permissions")

    def test_malformed_oidc_repo_fails(self):
        for repo in ("myorg/myrepo", "myrepo:*", "/myrepo:*", "myorg/myrepo:"):
            with self.subTest(oidc_repo=repo):
                with self.assertRaises(InvalidConfig) as ctx:
                    resolve(base_config(oidc_repo=repo))
                self.assertEqual(ctx.exception.field, "oidc_repo")

    def test_trust_policy(self):
        role = resolve(base_config()).graph.get(ACTIONS_ROLE)
        statement = role.attributes["assume_role_policy"]["Statement"][0]
        self.assertEqual(statement["Action"], "sts:AssumeRoleWithWebIdentity")
        self.assertEqual(
            statement["Principal"]["Federated"],
            "arn:aws:iam::123456789012:oidc-provider/token.actions.githubusercontent.com",
        )
        self.assertEqual(
            statement["Condition"]["StringEquals"],
            {"token.actions.githubusercontent.com:aud": "sts.amazonaws.com"},
        )
        self.assertEqual(
            statement["Condition"]["StringLike"],
            {"token.actions.githubusercontent.com:sub": "repo:myorg/myrepo:*"},
        )

    def test_datadog_permissions(self):
        graph = resolve(base_config(enable_datadog_permissions=True)).graph
        lookups = graph.of_kind(ResourceKind.DATA_LOOKUP)
        self.assertEqual(len(lookups), 4)
        attachment = graph.get(DATADOG_READ_ACCESS)
        self.assertIn(ACTIONS_ROLE, attachment.depends_on)
        self.assertEqual(set(attachment.depends_on), {ACTIONS_ROLE} | {spec.name for spec in lookups})

        granted = set()
        for statement in attachment.attributes["statements"]:
            granted.update(statement["actions"])
            for name in statement["resources"]:
                self.assertIs(graph.get(name).kind, ResourceKind.DATA_LOOKUP)
        self.assertTrue({"secretsmanager:GetSecretValue", "iam:GetRole", "iam:GetPolicy"} <= granted)

    def test_datadog_does_not_disturb_base_graph(self):
        base = resolve(base_config()).graph
        composed = resolve(base_config(enable_datadog_permissions=True)).graph
        for spec in base:
            self.assertEqual(composed.get(spec.name).to_dict(), spec.to_dict())

    def test_idempotent(self):
        raw = base_config(enable_dynamodb_locking=True, enable_datadog_permissions=True)
        first = resolve(raw)
        second = resolve(raw)
        self.assertEqual(first.graph.to_json(), second.graph.to_json())
        self.assertEqual(first.outputs, second.outputs)

    def test_resolved_graph_cannot_be_modified(self):
        graph = resolve(base_config()).graph
        before = graph.to_json()
        with self.assertRaises(TypeError):
            graph.get(STATE_BUCKET).attributes["versioning"] = False
        with self.assertRaises(TypeError):
            graph.get(ACTIONS_ROLE).attributes["assume_role_policy"]["Statement"][0]["Effect"] = "Deny"
        self.assertEqual(graph.to_json(), before)

    def test_partition_follows_region(self):
        graph = resolve(base_config(region="cn-north-1")).graph
        self.assertTrue(graph.get(STATE_BUCKET).attributes["arn"].startswith("arn:aws-cn:s3:::"))


class TestSubjectMatching(unittest.TestCase):
    """Trust policy subject wildcard semantics"""

    def test_trailing_wildcard(self):
        pattern = subject_pattern("myorg/myrepo:*")
        self.assertTrue(subject_matches(pattern, "repo:myorg/myrepo:ref:refs/heads/main"))
        self.assertTrue(subject_matches(pattern, "repo:myorg/myrepo:pull_request"))
        self.assertFalse(subject_matches(pattern, "repo:myorg/myrepo-fork:ref:refs/heads/main"))
        self.assertFalse(subject_matches(pattern, "repo:other/myrepo:ref:refs/heads/main"))

    def test_exact_filter(self):
        pattern = subject_pattern("myorg/myrepo:ref:refs/heads/main")
        self.assertTrue(subject_matches(pattern, "repo:myorg/myrepo:ref:refs/heads/main"))
        self.assertFalse(subject_matches(pattern, "repo:myorg/myrepo:ref:refs/heads/dev"))

    def test_single_character_wildcard(self):
        self.assertTrue(subject_matches("repo:o/r:env:prod?", "repo:o/r:env:prod1"))
        self.assertFalse(subject_matches("repo:o/r:env:prod?", "repo:o/r:env:prod"))

    def test_repo_prefix_accepted(self):
        self.assertEqual(subject_pattern("repo:myorg/myrepo:*"), "repo:myorg/myrepo:*")


class TestOutputs(unittest.TestCase):
    """Output projection and backend configuration"""

    def test_six_outputs(self):
        outputs = resolve(base_config()).outputs
        self.assertEqual(set(outputs), {
            "tf_state_bucket_name", "tf_state_bucket_arn", "tf_kms_key_arn",
            "tf_dynamodb_table_name", "github_actions_role_arn", "github_oidc_provider_arn",
        })
        self.assertEqual(outputs["tf_state_bucket_arn"], "arn:aws:s3:::terraform-state-123456789012")
        self.assertEqual(outputs["github_actions_role_arn"],
                         "arn:aws:iam::123456789012:role/github-actions-terraform")

    def test_key_arn_unknown_until_reconciled(self):
        resolution = resolve(base_config())
        self.assertIs(resolution.outputs["tf_kms_key_arn"], UNKNOWN)
        self.assertIsNot(resolution.outputs["tf_kms_key_arn"], ABSENT)

    def test_resolved_attributes_take_precedence(self):
        from tfstate_bootstrap import project_outputs
        graph = resolve(base_config()).graph
        key_arn = "arn:aws:kms:eu-central-1:123456789012:key/abc"
        outputs = project_outputs(graph, {KMS_KEY: {"arn": key_arn}})
        self.assertEqual(outputs["tf_kms_key_arn"], key_arn)

    def test_backend_config_native_locking(self):
        graph = resolve(base_config()).graph
        config = backend_config(graph, "eu-central-1")
        self.assertEqual(config["bucket"], "terraform-state-123456789012")
        self.assertTrue(config["use_lockfile"])
        self.assertNotIn("dynamodb_table", config)

    def test_backend_config_dynamodb_locking(self):
        graph = resolve(base_config(enable_dynamodb_locking=True)).graph
        config = backend_config(graph, "eu-central-1")
        self.assertEqual(config["dynamodb_table"], "terraform")
        self.assertNotIn("use_lockfile", config)

    def test_migration_commands(self):
        graph = resolve(base_config(enable_dynamodb_locking=True)).graph
        commands = migration_commands(graph, "eu-central-1")
        self.assertIn("terraform init -migrate-state \\", commands)
        self.assertIn("  -backend-config=dynamodb_table=terraform", commands)

    def test_migration_commands_include_kms_key(self):
        graph = resolve(base_config()).graph
        commands = migration_commands(graph, "eu-central-1")
        self.assertIn("  -backend-config=kms_key_id=$(pulumi stack output tf_kms_key_arn) \\", commands)

        key_arn = "arn:aws:kms:eu-central-1:123456789012:key/abc"
        commands = migration_commands(graph, "eu-central-1", resolved={KMS_KEY: {"arn": key_arn}})
        self.assertIn(f"  -backend-config=kms_key_id={key_arn} \\", commands)
        self.assertEqual(backend_config(graph, "eu-central-1", resolved={KMS_KEY: {"arn": key_arn}})["kms_key_id"], key_arn)


if __name__ == "__main__":
    unittest.main(verbosity=2)
