"""
Storage Lab - KMS encrypted S3 site bucket with least-privilege IAM
Organized by concern, runs against LocalStack or AWS
"""
import pulumi
from config import get_config
from src.encryption import create_encryption_key
from src.storage import create_log_bucket, create_site_bucket
from src.access import create_access_policies, create_log_group

# Configuration
cfg = get_config()
pulumi.log.info(f"Stack configuration: {cfg.summary()}")

# 1. Encryption key
encryption = create_encryption_key(cfg)

# 2. Buckets (site bucket encryption references the key)
log_bucket = create_log_bucket(cfg)
site_bucket = create_site_bucket(cfg, encryption["key_arn"], log_bucket["bucket_id"], log_bucket["bucket_arn"])

# 3. Access policies and logging
policies = create_access_policies(cfg, site_bucket["bucket_arn"], encryption["key_arn"])
log_group = create_log_group(cfg)

# Exports
pulumi.export("region", cfg.aws_region)
pulumi.export("resource_prefix", cfg.resource_prefix)
pulumi.export("bucket_name", site_bucket["bucket_id"])
pulumi.export("bucket_arn", site_bucket["bucket_arn"])
pulumi.export("website_endpoint", site_bucket["website_endpoint"])
pulumi.export("log_bucket_name", log_bucket["bucket_id"])
pulumi.export("log_group_name", log_group["log_group_name"])
pulumi.export("kms_key_id", encryption["key_id"])
pulumi.export("kms_key_arn", encryption["key_arn"])
pulumi.export("kms_alias", encryption["alias_name"])
pulumi.export("reader_policy_arn", policies["reader_policy_arn"])
pulumi.export("deployer_policy_arn", policies["deployer_policy_arn"])
