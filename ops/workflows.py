"""
Deploy / status / scan / cleanup workflows
Linear sequences of emulator, engine and cloud API calls, each returning an exit code
"""

from __future__ import annotations

import json
from typing import Any

from . import cloud, emulator, scan as scanner, site, stack
from .errors import LabError
from .settings import Settings


def echo(line: str) -> None:
    print(line, end="" if line.endswith("\n") else "\n")


def print_outputs(outputs: dict[str, Any]) -> None:
    if not outputs:
        print("  (no outputs)")
        return
    width = max(len(name) for name in outputs)
    for name in sorted(outputs):
        value = outputs[name]
        if not isinstance(value, str):
            value = json.dumps(value)
        print(f"  {name.ljust(width)}  {value}")


def print_error(error: LabError) -> None:
    print(f"\n❌ {error.message}")
    if error.hint:
        print(f"🔧 {error.hint}")


def deploy(settings: Settings, start_emulator: bool = False, skip_site: bool = False) -> int:
    """Bring the emulator up, apply the stack and publish the site."""
    print("🚀 Deploying storage-lab")
    print("========================")

    if start_emulator:
        emulator.start(settings)
    emulator.wait_until_ready(settings)
    print(f"✅ Emulator ready at {settings.endpoint}")

    print("\n📋 Planning changes...")
    stack.preview(settings, on_output=echo)

    print("\n🏗️ Applying changes...")
    outputs = stack.up(settings, on_output=echo)
    print("\n✅ Stack applied. Outputs:")
    print_outputs(outputs)

    bucket = outputs.get("bucket_name")
    if skip_site:
        print("\n⚠️ Skipping site upload (--skip-site)")
    elif not settings.site_dir.exists():
        print(f"\n⚠️ No site directory at {settings.site_dir}, skipping upload")
    elif bucket:
        print("\n📦 Building and uploading site...")
        dist = site.build(settings)
        s3 = cloud.client("s3", settings)
        with cloud.cloud_errors(f"Uploading artifacts to {bucket}"):
            result = site.upload(s3, bucket, dist, kms_key_id=outputs.get("kms_key_arn"))
        print(f"✅ Uploaded {len(result.uploaded)} files, removed {len(result.deleted)} stale files")
        print(f"🌐 Website: {settings.website_url(bucket)}")

    return 0


def status(settings: Settings) -> int:
    """Report emulator health, stack outputs and what exists in the cloud."""
    print("📊 storage-lab status")
    print("=====================")

    states = emulator.health(settings)
    print(f"\nEmulator ({settings.endpoint}):")
    for service in settings.required_services:
        state = states.get(service, "missing")
        marker = "✅" if state in emulator.READY_STATES else "❌"
        print(f"  {marker} {service}: {state}")

    outputs = stack.outputs(settings)
    print(f"\nStack {settings.stack_name} outputs:")
    print_outputs(outputs)
    if not outputs:
        print(f"\n❌ Stack {settings.stack_name} is not deployed; run `python -m ops deploy`")
        return 1

    resources = stack.state_resources(stack.export_state(settings))
    print(f"\nManaged resources: {len(resources)}")
    for resource in resources:
        print(f"  - {resource['type']}  {resource['id']}")

    s3 = cloud.client("s3", settings)
    expected = outputs.get("bucket_name")
    with cloud.cloud_errors("Listing buckets"):
        buckets = cloud.list_buckets(s3)
    print("\nBuckets:")
    for name in buckets:
        print(f"  - {name}")

    healthy = True
    if expected:
        present = expected in buckets
        healthy = present
        print(f"\n{'✅' if present else '❌'} Site bucket {expected} {'exists' if present else 'is missing'}")
        if present:
            with cloud.cloud_errors(f"Describing {expected}"):
                details = cloud.describe_bucket(s3, expected)
            for key in ("versioning", "encryption", "kms_key_id", "index_document", "object_count"):
                print(f"    {key}: {details[key]}")

    log_group = outputs.get("log_group_name")
    # Policy names start with the configured resource prefix
    prefix = outputs.get("resource_prefix") or settings.project_name
    with cloud.cloud_errors("Listing IAM policies"):
        policies = cloud.list_policies(cloud.client("iam", settings), prefix)
    print("\nIAM policies:")
    for policy in policies:
        print(f"  - {policy['name']}  {policy['arn']}")

    if log_group:
        with cloud.cloud_errors("Listing log groups"):
            groups = cloud.list_log_groups(cloud.client("logs", settings), log_group)
        print("\nLog groups:")
        for group in groups:
            print(f"  - {group}")

    return 0 if healthy else 1


def scan(settings: Settings) -> int:
    """Run the guardrail scan and report the result."""
    print("🔍 Scanning declared resources")
    print("==============================")

    result = scanner.scan(settings)
    print(f"\n📝 Report: {result.report_path}")
    for violation in result.violations:
        marker = "❌" if violation.level == "mandatory" else "⚠️"
        print(f"  {marker} [{violation.level}] {violation.policy}: {violation.resource}")

    if result.passed:
        print(f"\n✅ No mandatory violations ({len(result.advisory)} advisory)")
        return 0
    print(f"\n❌ {len(result.mandatory)} mandatory violations")
    return 1


def cleanup(settings: Settings, remove_stack: bool = False, stop_emulator: bool = False) -> int:
    """Empty the stack's buckets, destroy it and optionally stop the emulator."""
    print("🧹 Cleaning up storage-lab")
    print("==========================")

    outputs = stack.outputs(settings)
    s3 = cloud.client("s3", settings)
    for key in ("bucket_name", "log_bucket_name"):
        bucket = outputs.get(key)
        if not bucket:
            continue
        with cloud.cloud_errors(f"Emptying {bucket}"):
            if cloud.bucket_exists(s3, bucket):
                removed = cloud.empty_bucket(s3, bucket)
                print(f"✅ Emptied {bucket} ({removed} object versions)")

    stack.destroy(settings, on_output=echo, remove=remove_stack)
    print(f"✅ Destroyed stack {settings.stack_name}" + (" and removed it" if remove_stack else ""))

    if stop_emulator:
        emulator.stop(settings, volumes=True)
        print("✅ Emulator stopped")
    return 0
