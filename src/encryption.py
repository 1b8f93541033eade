"""
Encryption
Customer-managed KMS key for the site bucket and its alias
"""
import pulumi
import pulumi_aws as aws


def create_encryption_key(cfg):
    """Create a symmetric KMS key with rotation and a friendly alias"""

    pulumi.log.info(f"Declaring KMS key {cfg.kms_alias_name}")

    key = aws.kms.Key(f"{cfg.resource_prefix}-key",
        description=f"Encryption key for {cfg.resource_prefix} storage",
        key_usage="ENCRYPT_DECRYPT",
        customer_master_key_spec="SYMMETRIC_DEFAULT",
        enable_key_rotation=cfg.enable_key_rotation,
        deletion_window_in_days=cfg.kms_deletion_window_days,
        tags={**cfg.common_tags, "Name": f"{cfg.resource_prefix}-key"})

    alias = aws.kms.Alias(f"{cfg.resource_prefix}-key-alias",
        name=cfg.kms_alias_name,
        target_key_id=key.key_id)

    return {
        "key": key,
        "alias": alias,
        "key_id": key.key_id,
        "key_arn": key.arn,
        "alias_name": alias.name,
    }
