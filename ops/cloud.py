"""Direct cloud API access (through the emulator) for status and cleanup."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from .errors import CloudError
from .settings import Settings

logger = logging.getLogger(__name__)

MISSING_BUCKET_CODES = {"404", "NoSuchBucket", "NotFound"}
DELETE_BATCH_SIZE = 1000


def client(service: str, settings: Settings) -> Any:
    """Create a boto3 client for a service on the emulator endpoint."""
    config = BotoConfig(
        signature_version="s3v4",
        s3={"addressing_style": "path"},
        retries={"max_attempts": 3, "mode": "standard"},
    )
    return boto3.client(
        service,
        endpoint_url=settings.endpoint,
        region_name=settings.region,
        aws_access_key_id=settings.access_key,
        aws_secret_access_key=settings.secret_key,
        config=config,
    )


def _error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


@contextmanager
def cloud_errors(action: str) -> Iterator[None]:
    """Translate botocore failures into CloudError."""
    try:
        yield
    except ClientError as e:
        message = e.response.get("Error", {}).get("Message", "")
        raise CloudError(f"{action} failed: {_error_code(e)} {message}".strip()) from e
    except BotoCoreError as e:
        raise CloudError(f"{action} failed: {e}") from e


def list_buckets(s3: Any) -> list[str]:
    response = s3.list_buckets()
    return sorted(bucket["Name"] for bucket in response.get("Buckets", []))


def bucket_exists(s3: Any, name: str) -> bool:
    """Check if a bucket exists and is accessible.

    Raises:
        ClientError: For errors other than the bucket being absent
    """
    try:
        s3.head_bucket(Bucket=name)
        return True
    except ClientError as e:
        if _error_code(e) in MISSING_BUCKET_CODES:
            return False
        raise


def _optional(call, missing_codes: set[str], default=None, **kwargs):
    """Call an S3 getter, mapping 'not configured' errors to a default."""
    try:
        return call(**kwargs)
    except ClientError as e:
        if _error_code(e) in missing_codes:
            return default
        raise


def describe_bucket(s3: Any, name: str) -> dict[str, Any]:
    """Summarize versioning, encryption, website and object count of a bucket."""
    versioning = s3.get_bucket_versioning(Bucket=name)

    encryption = _optional(
        s3.get_bucket_encryption,
        {"ServerSideEncryptionConfigurationNotFoundError"},
        default={},
        Bucket=name,
    )
    rules = encryption.get("ServerSideEncryptionConfiguration", {}).get("Rules", [])
    default = rules[0].get("ApplyServerSideEncryptionByDefault", {}) if rules else {}

    website = _optional(
        s3.get_bucket_website,
        {"NoSuchWebsiteConfiguration"},
        default={},
        Bucket=name,
    )

    object_count = 0
    paginator = s3.get_paginator("list_objects_v2")
    for page in paginator.paginate(Bucket=name):
        object_count += page.get("KeyCount", len(page.get("Contents", [])))

    return {
        "name": name,
        "versioning": versioning.get("Status", "Disabled"),
        "encryption": default.get("SSEAlgorithm", "none"),
        "kms_key_id": default.get("KMSMasterKeyID", ""),
        "index_document": website.get("IndexDocument", {}).get("Suffix", ""),
        "object_count": object_count,
    }


def list_policies(iam: Any, prefix: str) -> list[dict[str, str]]:
    """Customer-managed IAM policies whose name starts with prefix."""
    policies = []
    paginator = iam.get_paginator("list_policies")
    for page in paginator.paginate(Scope="Local"):
        for policy in page.get("Policies", []):
            if policy["PolicyName"].startswith(prefix):
                policies.append({"name": policy["PolicyName"], "arn": policy["Arn"]})
    return policies


def list_log_groups(logs: Any, prefix: str) -> list[str]:
    groups = []
    paginator = logs.get_paginator("describe_log_groups")
    for page in paginator.paginate(logGroupNamePrefix=prefix):
        groups.extend(group["logGroupName"] for group in page.get("logGroups", []))
    return groups


def delete_objects(s3: Any, name: str, objects: list[dict[str, str]]) -> int:
    """Delete objects (optionally versioned) in batches of 1000.

    Returns:
        Number of objects deleted

    Raises:
        CloudError: If the bucket refused any of the deletes
    """
    for start in range(0, len(objects), DELETE_BATCH_SIZE):
        batch = objects[start:start + DELETE_BATCH_SIZE]
        response = s3.delete_objects(Bucket=name, Delete={"Objects": batch, "Quiet": True})
        errors = response.get("Errors", [])
        if errors:
            first = errors[0]
            raise CloudError(
                f"Failed to delete {len(errors)} objects from {name}: "
                f"{first.get('Key')} ({first.get('Code')})"
            )
    return len(objects)


def empty_bucket(s3: Any, name: str) -> int:
    """Delete every object version and delete marker in a bucket.

    Returns:
        Number of versions and markers removed
    """
    removed = 0
    paginator = s3.get_paginator("list_object_versions")
    for page in paginator.paginate(Bucket=name):
        entries = [
            {"Key": item["Key"], "VersionId": item["VersionId"]}
            for item in page.get("Versions", []) + page.get("DeleteMarkers", [])
        ]
        removed += delete_objects(s3, name, entries)
    logger.info("Removed %d object versions from %s", removed, name)
    return removed


def remove_bucket(s3: Any, name: str) -> int:
    """Empty and delete a bucket; returns the number of versions removed."""
    removed = empty_bucket(s3, name)
    s3.delete_bucket(Bucket=name)
    logger.info("Deleted bucket %s", name)
    return removed
