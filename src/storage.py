"""
Storage
Site artifact bucket (KMS encrypted, website enabled) and its access-log bucket
"""
import json
import pulumi
import pulumi_aws as aws


def block_public_access(name, bucket_id):
    """Block every form of public access on a bucket"""
    return aws.s3.BucketPublicAccessBlock(f"{name}-pab",
        bucket=bucket_id,
        block_public_acls=True,
        block_public_policy=True,
        ignore_public_acls=True,
        restrict_public_buckets=True)


def create_log_bucket(cfg):
    """Create the bucket receiving S3 server access logs"""

    name = f"{cfg.resource_prefix}-logs"
    tags = {**cfg.common_tags, "Name": cfg.log_bucket_name, "Purpose": "access-logs"}

    bucket = aws.s3.Bucket(name,
        bucket=cfg.log_bucket_name,
        force_destroy=cfg.force_destroy,
        tags=tags)

    ownership = aws.s3.BucketOwnershipControls(f"{name}-ownership",
        bucket=bucket.id,
        rule=aws.s3.BucketOwnershipControlsRuleArgs(
            object_ownership="BucketOwnerPreferred"))

    # Log delivery does not support SSE-KMS targets
    encryption = aws.s3.BucketServerSideEncryptionConfiguration(f"{name}-encryption",
        bucket=bucket.id,
        rules=[aws.s3.BucketServerSideEncryptionConfigurationRuleArgs(
            apply_server_side_encryption_by_default=aws.s3.BucketServerSideEncryptionConfigurationRuleApplyServerSideEncryptionByDefaultArgs(
                sse_algorithm="AES256"))])

    public_access_block = block_public_access(name, bucket.id)

    lifecycle = aws.s3.BucketLifecycleConfiguration(f"{name}-lifecycle",
        bucket=bucket.id,
        rules=[aws.s3.BucketLifecycleConfigurationRuleArgs(
            id="expire_logs",
            status="Enabled",
            filter=aws.s3.BucketLifecycleConfigurationRuleFilterArgs(prefix=""),
            expiration=aws.s3.BucketLifecycleConfigurationRuleExpirationArgs(
                days=cfg.log_retention_days))])

    return {
        "bucket": bucket,
        "bucket_id": bucket.id,
        "bucket_arn": bucket.arn,
        "_config": {
            "ownership": ownership,
            "encryption": encryption,
            "public_access_block": public_access_block,
            "lifecycle": lifecycle,
        },
    }


def log_delivery_policy_document(log_bucket_arn, site_bucket_arn, prefix="site/"):
    """Bucket policy letting the S3 logging service write the site's access logs"""
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Sid": "S3ServerAccessLogsPolicy",
                "Effect": "Allow",
                "Principal": {"Service": "logging.s3.amazonaws.com"},
                "Action": ["s3:PutObject"],
                "Resource": f"{log_bucket_arn}/{prefix}*",
                "Condition": {"ArnLike": {"aws:SourceArn": site_bucket_arn}},
            }
        ],
    }


def create_site_bucket(cfg, key_arn, log_bucket_id, log_bucket_arn):
    """
    Create the bucket holding the front-end build artifacts

    Args:
        cfg: Stack configuration
        key_arn: ARN of the KMS key used for default encryption
        log_bucket_id: Bucket receiving the server access logs
        log_bucket_arn: ARN of that bucket, for the log delivery policy

    Returns:
        Dict with bucket resource, outputs and child resources
    """
    name = f"{cfg.resource_prefix}-site"

    pulumi.log.info(f"Declaring site bucket {cfg.site_bucket_name}")

    bucket = aws.s3.Bucket(name,
        bucket=cfg.site_bucket_name,
        force_destroy=cfg.force_destroy,
        tags={**cfg.common_tags, "Name": cfg.site_bucket_name, "Purpose": "site-artifacts"})

    versioning = aws.s3.BucketVersioning(f"{name}-versioning",
        bucket=bucket.id,
        versioning_configuration=aws.s3.BucketVersioningVersioningConfigurationArgs(
            status="Enabled"))

    encryption = aws.s3.BucketServerSideEncryptionConfiguration(f"{name}-encryption",
        bucket=bucket.id,
        rules=[aws.s3.BucketServerSideEncryptionConfigurationRuleArgs(
            apply_server_side_encryption_by_default=aws.s3.BucketServerSideEncryptionConfigurationRuleApplyServerSideEncryptionByDefaultArgs(
                sse_algorithm="aws:kms",
                kms_master_key_id=key_arn),
            bucket_key_enabled=True)])

    public_access_block = block_public_access(name, bucket.id)

    ownership = aws.s3.BucketOwnershipControls(f"{name}-ownership",
        bucket=bucket.id,
        rule=aws.s3.BucketOwnershipControlsRuleArgs(
            object_ownership="BucketOwnerEnforced"))

    lifecycle = aws.s3.BucketLifecycleConfiguration(f"{name}-lifecycle",
        bucket=bucket.id,
        rules=[aws.s3.BucketLifecycleConfigurationRuleArgs(
            id="site_lifecycle",
            status="Enabled",
            filter=aws.s3.BucketLifecycleConfigurationRuleFilterArgs(prefix=""),
            noncurrent_version_expiration=aws.s3.BucketLifecycleConfigurationRuleNoncurrentVersionExpirationArgs(
                noncurrent_days=cfg.noncurrent_version_days),
            abort_incomplete_multipart_upload=aws.s3.BucketLifecycleConfigurationRuleAbortIncompleteMultipartUploadArgs(
                days_after_initiation=1))],
        opts=pulumi.ResourceOptions(depends_on=[versioning]))

    website = aws.s3.BucketWebsiteConfiguration(f"{name}-website",
        bucket=bucket.id,
        index_document=aws.s3.BucketWebsiteConfigurationIndexDocumentArgs(
            suffix=cfg.index_document),
        error_document=aws.s3.BucketWebsiteConfigurationErrorDocumentArgs(
            key=cfg.error_document))

    # PutBucketLogging rejects targets the logging service cannot write to
    log_delivery = aws.s3.BucketPolicy(f"{name}-log-delivery",
        bucket=log_bucket_id,
        policy=pulumi.Output.all(log_bucket_arn, bucket.arn).apply(
            lambda arns: json.dumps(log_delivery_policy_document(arns[0], arns[1]))))

    access_logging = aws.s3.BucketLogging(f"{name}-logging",
        bucket=bucket.id,
        target_bucket=log_bucket_id,
        target_prefix="site/",
        opts=pulumi.ResourceOptions(depends_on=[log_delivery]))

    return {
        "bucket": bucket,
        "bucket_id": bucket.id,
        "bucket_arn": bucket.arn,
        "website_endpoint": website.website_endpoint,
        "_config": {
            "versioning": versioning,
            "encryption": encryption,
            "public_access_block": public_access_block,
            "ownership": ownership,
            "lifecycle": lifecycle,
            "website": website,
            "log_delivery": log_delivery,
            "logging": access_logging,
        },
    }
