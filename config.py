"""
Configuration management for the storage-lab stack
"""

import ipaddress
import re

import pulumi
from typing import Dict, Any

BUCKET_NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9.-]{1,61}[a-z0-9]$")


def validate_bucket_name(name: str) -> str:
    """
    Check a bucket name against the S3 naming rules

    Args:
        name: Bucket name

    Returns:
        The name, unchanged

    Raises:
        ValueError: If the name is not a valid bucket name
    """
    if not BUCKET_NAME_PATTERN.match(name) or ".." in name:
        raise ValueError(f"Invalid S3 bucket name: {name!r}")
    try:
        ipaddress.ip_address(name)
    except ValueError:
        return name
    raise ValueError(f"S3 bucket name must not be an IP address: {name!r}")


class Config:
    """Centralized configuration management for the storage stack"""

    def __init__(self, config: pulumi.Config = None):
        self.config = config or pulumi.Config()
        aws_config = pulumi.Config("aws")

        # AWS Configuration
        self.aws_region = aws_config.get("region") or "us-east-1"

        # Naming
        self.project_name = self.config.get("project_name") or "storage-lab"
        self.environment = self.config.get("environment") or "localstack"

        # Site bucket
        self.bucket_name = self.config.get("bucket_name") or f"{self.resource_prefix}-site"
        self.index_document = self.config.get("index_document") or "index.html"
        self.error_document = self.config.get("error_document") or "error.html"
        self.noncurrent_version_days = self.config.get_int("noncurrent_version_days") or 30
        force_destroy = self.config.get_bool("force_destroy")
        self.force_destroy = True if force_destroy is None else force_destroy

        # Encryption
        self.kms_deletion_window_days = self.config.get_int("kms_deletion_window_days") or 7
        rotation = self.config.get_bool("enable_key_rotation")
        self.enable_key_rotation = True if rotation is None else rotation

        # Logging
        self.log_retention_days = self.config.get_int("log_retention_days") or 14

        # Additional tags
        self.additional_tags = self.config.get_object("tags") or {}

        self.validate()

    def validate(self) -> None:
        """Fail fast on values the provider would reject mid-apply"""
        if not 7 <= self.kms_deletion_window_days <= 30:
            raise ValueError(
                f"kms_deletion_window_days must be between 7 and 30, got {self.kms_deletion_window_days}"
            )
        validate_bucket_name(self.site_bucket_name)
        validate_bucket_name(self.log_bucket_name)

    @property
    def resource_prefix(self) -> str:
        return f"{self.project_name}-{self.environment}"

    @property
    def site_bucket_name(self) -> str:
        return self.bucket_name

    @property
    def log_bucket_name(self) -> str:
        return f"{self.resource_prefix}-logs"

    @property
    def kms_alias_name(self) -> str:
        return f"alias/{self.resource_prefix}"

    @property
    def log_group_name(self) -> str:
        return f"/{self.project_name}/{self.environment}/site"

    @property
    def common_tags(self) -> Dict[str, str]:
        """Get common tags for all resources"""
        base_tags = {
            "Environment": self.environment,
            "Project": self.project_name,
            "ManagedBy": "pulumi",
        }
        base_tags.update(self.additional_tags)
        return base_tags

    def summary(self) -> Dict[str, Any]:
        """Plain view of the effective configuration, used in logs"""
        return {
            "region": self.aws_region,
            "bucket": self.site_bucket_name,
            "log_bucket": self.log_bucket_name,
            "kms_alias": self.kms_alias_name,
            "key_rotation": self.enable_key_rotation,
            "force_destroy": self.force_destroy,
        }


def get_config() -> Config:
    """Get the global configuration instance"""
    return Config()
