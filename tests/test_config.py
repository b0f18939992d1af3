"""
Unit tests for reading the stack configuration
"""

import unittest
from unittest.mock import Mock, patch
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from tfstate_bootstrap import validate_config
from tfstate_bootstrap.config import get_config


def fake_config(values):
    config = Mock()
    config.get.side_effect = lambda key: values.get(key)
    config.get_bool.side_effect = lambda key: values.get(key)
    config.get_object.side_effect = lambda key: values.get(key)
    return config


class TestConfig(unittest.TestCase):

    def load(self, values, aws_values=None):
        project = fake_config(values)
        aws_config = fake_config(aws_values or {})
        with patch("tfstate_bootstrap.config.pulumi") as mock_pulumi:
            mock_pulumi.Config.side_effect = lambda namespace=None: aws_config if namespace == "aws" else project
            return get_config()

    def test_defaults(self):
        config = self.load({"aws_account_id": "123456789012", "oidc_repo": "myorg/myrepo:*"},
                           {"region": "eu-west-1"})
        self.assertEqual(config.region, "eu-west-1")
        self.assertFalse(config.enable_dynamodb_locking)
        self.assertTrue(config.enable_github_oidc)
        self.assertFalse(config.enable_datadog_permissions)
        self.assertEqual(config.state_key, "terraform.tfstate")

    def test_explicit_false_is_kept(self):
        config = self.load({"enable_github_oidc": False})
        self.assertFalse(config.enable_github_oidc)

    def test_common_tags_merge(self):
        config = self.load({"tags": {"Team": "platform", "ManagedBy": "pulumi-ci"}})
        self.assertEqual(config.common_tags["Team"], "platform")
        self.assertEqual(config.common_tags["ManagedBy"], "pulumi-ci")

    def test_raw_config_validates(self):
        config = self.load({
            "aws_account_id": "123456789012",
            "region": "eu-central-1",
            "oidc_repo": "myorg/myrepo:*",
            "enable_dynamodb_locking": True,
        })
        validated = validate_config(config.as_raw())
        self.assertTrue(validated.enable_dynamodb_locking)
        self.assertEqual(validated.tag_map["Project"], "terraform-state-backend")

    def test_account_id_from_caller_identity(self):
        config = self.load({"region": "eu-central-1"})
        with patch("tfstate_bootstrap.config.aws") as mock_aws, \
                patch("tfstate_bootstrap.config.pulumi"):
            mock_aws.get_caller_identity.return_value = Mock(account_id="210987654321")
            self.assertEqual(config.resolve_account_id(), "210987654321")
        self.assertEqual(config.as_raw()["aws_account_id"], "210987654321")


if __name__ == "__main__":
    unittest.main()
