"""Front-end build and artifact upload."""

from __future__ import annotations

import logging
import mimetypes
import os
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

from . import cloud
from .errors import ConfigurationError
from .process import run_command
from .settings import Settings

logger = logging.getLogger(__name__)

# Files never uploaded
EXCLUDE_NAMES = {".DS_Store", ".gitkeep", "Thumbs.db"}
EXCLUDE_SUFFIXES = {".map"}
EXCLUDE_DIRS = {".git", "node_modules", "__pycache__"}

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass
class SyncResult:
    """Keys touched by an upload."""

    uploaded: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)


def build(settings: Settings) -> Path:
    """Run the front-end build and return the artifact directory.

    The build is skipped when the site directory has no package.json; an
    existing artifact directory is then used as-is.

    Raises:
        CommandFailedError: If the build command fails
        ConfigurationError: If no artifact directory exists afterwards
    """
    site_dir = Path(settings.site_dir)
    dist = settings.dist_path

    if (site_dir / "package.json").exists():
        command = shlex.split(settings.site_build_command)
        logger.info("Building site in %s with `%s`", site_dir, settings.site_build_command)
        run_command(
            command,
            cwd=site_dir,
            hint=f"Run `{settings.site_build_command}` in {site_dir} to see the full build output.",
        )
    else:
        logger.info("No package.json in %s, using prebuilt artifacts", site_dir)

    if not dist.is_dir():
        raise ConfigurationError(
            f"Site artifacts not found at {dist}",
            hint="Set SITE_DIR / SITE_DIST_DIR to the front-end project, or pass --skip-site.",
        )
    return dist


def iter_artifacts(dist_dir: Path) -> Iterator[tuple[Path, str]]:
    """Yield (local path, object key) for every artifact to upload."""
    dist_dir = Path(dist_dir)
    for root, dirs, files in os.walk(dist_dir):
        dirs[:] = sorted(d for d in dirs if d not in EXCLUDE_DIRS)
        for name in sorted(files):
            path = Path(root) / name
            if name in EXCLUDE_NAMES or path.suffix in EXCLUDE_SUFFIXES:
                continue
            yield path, path.relative_to(dist_dir).as_posix()


def content_type(path: Path) -> str:
    guessed, _ = mimetypes.guess_type(str(path))
    return guessed or DEFAULT_CONTENT_TYPE


def _existing_keys(s3: Any, bucket: str) -> set[str]:
    keys = set()
    paginator = s3.get_paginator("list_objects_v2")
    for page in paginator.paginate(Bucket=bucket):
        keys.update(item["Key"] for item in page.get("Contents", []))
    return keys


def upload(
    s3: Any,
    bucket: str,
    dist_dir: Path,
    kms_key_id: str | None = None,
    delete: bool = True,
) -> SyncResult:
    """Sync build artifacts into the bucket.

    Args:
        s3: boto3 S3 client
        bucket: Target bucket name
        dist_dir: Directory holding the artifacts
        kms_key_id: Key used for SSE-KMS; bucket default encryption when None
        delete: Remove bucket keys with no local counterpart

    Returns:
        Uploaded and deleted keys

    Raises:
        CloudError: If the bucket refused to delete a stale key
    """
    result = SyncResult()
    local_keys = set()

    for path, key in iter_artifacts(dist_dir):
        extra_args = {"ContentType": content_type(path)}
        if kms_key_id:
            extra_args["ServerSideEncryption"] = "aws:kms"
            extra_args["SSEKMSKeyId"] = kms_key_id
        s3.upload_file(str(path), bucket, key, ExtraArgs=extra_args)
        logger.debug("Uploaded %s (%s)", key, extra_args["ContentType"])
        result.uploaded.append(key)
        local_keys.add(key)

    if delete:
        stale = sorted(_existing_keys(s3, bucket) - local_keys)
        cloud.delete_objects(s3, bucket, [{"Key": key} for key in stale])
        result.deleted = stale

    logger.info(
        "Synced %s: %d uploaded, %d deleted",
        bucket, len(result.uploaded), len(result.deleted),
    )
    return result
