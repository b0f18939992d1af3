"""
State Storage Functions
Creates the KMS key, S3 state bucket and DynamoDB lock table from resolved specs
"""

import json
from typing import Dict

import pulumi
import pulumi_aws as aws

from ..graph import ResourceSpec


def resource_name(spec: ResourceSpec) -> str:
    return spec.name.replace("_", "-")


def create_encryption_key(spec: ResourceSpec, opts: pulumi.ResourceOptions = None) -> Dict[str, any]:
    """
    Create the KMS key that encrypts state objects

    Args:
        spec: EncryptionKey spec
        opts: Pulumi resource options

    Returns:
        Dict with key resource and outputs
    """
    attrs = spec.plain_attributes()
    name = resource_name(spec)

    key = aws.kms.Key(
        name,
        description=attrs["description"],
        key_usage="ENCRYPT_DECRYPT",
        enable_key_rotation=attrs["enable_key_rotation"],
        deletion_window_in_days=attrs["deletion_window_in_days"],
        tags=attrs["tags"],
        opts=opts
    )

    alias = aws.kms.Alias(
        f"{name}-alias",
        name=attrs["alias"],
        target_key_id=key.key_id
    )

    return {
        "arn": key.arn,
        "key_id": key.key_id,
        "alias": alias.name,
        "_resource": key,
        "_alias": alias
    }


def configure_s3_bucket_settings(spec: ResourceSpec,
                                 bucket: aws.s3.Bucket,
                                 kms_key_arn: 'pulumi.Output[str]') -> Dict[str, any]:
    """
    Configure versioning, encryption, public access, lifecycle and TLS-only access

    Args:
        spec: Bucket spec
        bucket: The state bucket
        kms_key_arn: ARN of the key used for SSE-KMS

    Returns:
        Dict with bucket configuration resources
    """
    attrs = spec.plain_attributes()
    name = resource_name(spec)
    after_bucket = pulumi.ResourceOptions(depends_on=[bucket])

    versioning = aws.s3.BucketVersioning(
        f"{name}-versioning",
        bucket=bucket.id,
        versioning_configuration=aws.s3.BucketVersioningVersioningConfigurationArgs(
            status="Enabled" if attrs["versioning"] else "Suspended"
        ),
        opts=after_bucket
    )

    encryption = aws.s3.BucketServerSideEncryptionConfiguration(
        f"{name}-encryption",
        bucket=bucket.id,
        rules=[
            aws.s3.BucketServerSideEncryptionConfigurationRuleArgs(
                apply_server_side_encryption_by_default=aws.s3.BucketServerSideEncryptionConfigurationRuleApplyServerSideEncryptionByDefaultArgs(
                    sse_algorithm=attrs["encryption"]["sse_algorithm"],
                    kms_master_key_id=kms_key_arn
                ),
                bucket_key_enabled=attrs["encryption"]["bucket_key_enabled"]
            )
        ],
        opts=after_bucket
    )

    public_access_block = aws.s3.BucketPublicAccessBlock(
        f"{name}-pab",
        bucket=bucket.id,
        opts=after_bucket,
        **attrs["public_access_block"]
    )

    lifecycle = aws.s3.BucketLifecycleConfiguration(
        f"{name}-lifecycle",
        bucket=bucket.id,
        rules=[
            aws.s3.BucketLifecycleConfigurationRuleArgs(
                id="state_lifecycle",
                status="Enabled",
                filter=aws.s3.BucketLifecycleConfigurationRuleFilterArgs(
                    prefix=""
                ),
                noncurrent_version_expiration=aws.s3.BucketLifecycleConfigurationRuleNoncurrentVersionExpirationArgs(
                    noncurrent_days=attrs["lifecycle"]["noncurrent_version_expiration_days"]
                ),
                abort_incomplete_multipart_upload=aws.s3.BucketLifecycleConfigurationRuleAbortIncompleteMultipartUploadArgs(
                    days_after_initiation=attrs["lifecycle"]["abort_incomplete_multipart_upload_days"]
                )
            )
        ],
        opts=pulumi.ResourceOptions(depends_on=[bucket, versioning])
    )

    # Attached after the public access block so block_public_policy never rejects it
    policy = aws.s3.BucketPolicy(
        f"{name}-tls-only",
        bucket=bucket.id,
        policy=json.dumps(attrs["policy"]),
        opts=pulumi.ResourceOptions(depends_on=[bucket, public_access_block])
    )

    return {
        "versioning": versioning,
        "encryption": encryption,
        "public_access_block": public_access_block,
        "lifecycle": lifecycle,
        "policy": policy
    }


def create_state_bucket(spec: ResourceSpec,
                        kms_key_arn: 'pulumi.Output[str]',
                        opts: pulumi.ResourceOptions = None) -> Dict[str, any]:
    """
    Create the S3 bucket holding Terraform state

    Args:
        spec: Bucket spec
        kms_key_arn: ARN of the encryption key
        opts: Pulumi resource options carrying the dependency on the key

    Returns:
        Dict with bucket resource and outputs
    """
    attrs = spec.plain_attributes()

    bucket = aws.s3.Bucket(
        resource_name(spec),
        bucket=attrs["bucket"],
        tags=attrs["tags"],
        opts=opts
    )

    settings = configure_s3_bucket_settings(spec, bucket, kms_key_arn)

    return {
        "bucket": bucket.bucket,
        "arn": bucket.arn,
        "_resource": bucket,
        "_bucket_config": settings
    }


def create_lock_table(spec: ResourceSpec, opts: pulumi.ResourceOptions = None) -> Dict[str, any]:
    """
    Create the DynamoDB table used for classic state locking

    Args:
        spec: LockTable spec
        opts: Pulumi resource options

    Returns:
        Dict with table resource and outputs
    """
    attrs = spec.plain_attributes()

    table = aws.dynamodb.Table(
        resource_name(spec),
        name=attrs["name"],
        billing_mode=attrs["billing_mode"],
        hash_key=attrs["hash_key"],
        attributes=[
            aws.dynamodb.TableAttributeArgs(
                name=attrs["hash_key"],
                type="S"
            )
        ],
        server_side_encryption=aws.dynamodb.TableServerSideEncryptionArgs(
            enabled=attrs["server_side_encryption"]
        ),
        tags=attrs["tags"],
        opts=opts
    )

    return {
        "name": table.name,
        "arn": table.arn,
        "_resource": table
    }
