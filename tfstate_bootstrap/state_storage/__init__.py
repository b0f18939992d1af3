"""
State Storage Module
KMS key, S3 state bucket and DynamoDB lock table
"""

from .functions import (
    configure_s3_bucket_settings,
    create_encryption_key,
    create_lock_table,
    create_state_bucket,
)

__all__ = [
    "configure_s3_bucket_settings",
    "create_encryption_key",
    "create_lock_table",
    "create_state_bucket",
]
