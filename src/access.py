"""
Access
Least-privilege IAM policies for reading and deploying the site, plus the
application log group
"""
import json
import pulumi
import pulumi_aws as aws
from typing import Dict, Any

READ_OBJECT_ACTIONS = ["s3:GetObject"]
LIST_BUCKET_ACTIONS = ["s3:ListBucket"]
WRITE_OBJECT_ACTIONS = ["s3:PutObject", "s3:DeleteObject"]
KMS_READ_ACTIONS = ["kms:Decrypt"]
KMS_WRITE_ACTIONS = ["kms:Encrypt", "kms:GenerateDataKey"]


def _statement(sid: str, actions, resource) -> Dict[str, Any]:
    return {
        "Sid": sid,
        "Effect": "Allow",
        "Action": list(actions),
        "Resource": resource,
    }


def reader_policy_document(bucket_arn: str, key_arn: str) -> Dict[str, Any]:
    """
    Build the policy document granting read access to the site artifacts

    Args:
        bucket_arn: ARN of the site bucket
        key_arn: ARN of the KMS key encrypting the bucket

    Returns:
        IAM policy document
    """
    return {
        "Version": "2012-10-17",
        "Statement": [
            _statement("ListSiteBucket", LIST_BUCKET_ACTIONS, bucket_arn),
            _statement("ReadSiteObjects", READ_OBJECT_ACTIONS, f"{bucket_arn}/*"),
            _statement("DecryptSiteObjects", KMS_READ_ACTIONS, key_arn),
        ],
    }


def deployer_policy_document(bucket_arn: str, key_arn: str) -> Dict[str, Any]:
    """
    Build the policy document granting read/write access to the site artifacts

    Args:
        bucket_arn: ARN of the site bucket
        key_arn: ARN of the KMS key encrypting the bucket

    Returns:
        IAM policy document
    """
    return {
        "Version": "2012-10-17",
        "Statement": [
            _statement("ListSiteBucket", LIST_BUCKET_ACTIONS, bucket_arn),
            _statement("ManageSiteObjects", READ_OBJECT_ACTIONS + WRITE_OBJECT_ACTIONS, f"{bucket_arn}/*"),
            _statement("UseSiteKey", KMS_READ_ACTIONS + KMS_WRITE_ACTIONS, key_arn),
        ],
    }


def create_access_policies(cfg, bucket_arn, key_arn):
    """Create the reader and deployer IAM policies bound to the bucket and key"""

    arns = pulumi.Output.all(bucket_arn=bucket_arn, key_arn=key_arn)

    reader = aws.iam.Policy(f"{cfg.resource_prefix}-site-reader",
        name=f"{cfg.resource_prefix}-site-reader",
        description=f"Read-only access to {cfg.site_bucket_name}",
        policy=arns.apply(lambda args: json.dumps(
            reader_policy_document(args["bucket_arn"], args["key_arn"]))),
        tags=cfg.common_tags)

    deployer = aws.iam.Policy(f"{cfg.resource_prefix}-site-deployer",
        name=f"{cfg.resource_prefix}-site-deployer",
        description=f"Artifact upload access to {cfg.site_bucket_name}",
        policy=arns.apply(lambda args: json.dumps(
            deployer_policy_document(args["bucket_arn"], args["key_arn"]))),
        tags=cfg.common_tags)

    return {
        "reader": reader,
        "deployer": deployer,
        "reader_policy_arn": reader.arn,
        "deployer_policy_arn": deployer.arn,
    }


def create_log_group(cfg):
    """Create the CloudWatch log group for the deployed site"""

    log_group = aws.cloudwatch.LogGroup(f"{cfg.resource_prefix}-site-logs",
        name=cfg.log_group_name,
        retention_in_days=cfg.log_retention_days,
        tags=cfg.common_tags)

    return {
        "log_group": log_group,
        "log_group_name": log_group.name,
    }
