"""
Guardrail checks evaluated against declared resource properties

Each check takes the resource property map (camelCase keys, as the engine
hands them to policy packs) and returns a list of violation messages.
Values that are not known yet during a preview are skipped.
"""

import json
from typing import Any, Dict, List

S3_BUCKET_ENCRYPTION = "aws:s3/bucketServerSideEncryptionConfiguration:BucketServerSideEncryptionConfiguration"
S3_PUBLIC_ACCESS_BLOCK = "aws:s3/bucketPublicAccessBlock:BucketPublicAccessBlock"
S3_BUCKET_VERSIONING = "aws:s3/bucketVersioning:BucketVersioning"
KMS_KEY = "aws:kms/key:Key"
IAM_POLICY = "aws:iam/policy:Policy"
LOG_GROUP = "aws:cloudwatch/logGroup:LogGroup"

# Placeholder the engine substitutes for values computed during an update
UNKNOWN = "04da6b54-80e4-46f7-96ec-b56ff0331ba9"

KMS_ALGORITHMS = {"aws:kms", "aws:kms:dsse"}
PUBLIC_ACCESS_FLAGS = ["blockPublicAcls", "blockPublicPolicy", "ignorePublicAcls", "restrictPublicBuckets"]


def _as_list(value) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def check_bucket_encryption(props: Dict[str, Any], allow_aes256: bool = False) -> List[str]:
    """Every default-encryption rule must use KMS (or AES256 where allowed)"""
    violations = []
    rules = props.get("rules")
    if not isinstance(rules, list):
        return violations
    if not rules:
        return ["Bucket encryption configuration has no rules"]
    allowed = KMS_ALGORITHMS | ({"AES256"} if allow_aes256 else set())
    for index, rule in enumerate(rules):
        if not isinstance(rule, dict):
            continue
        default = rule.get("applyServerSideEncryptionByDefault")
        if not isinstance(default, dict):
            continue
        algorithm = default.get("sseAlgorithm")
        if not isinstance(algorithm, str):
            continue
        if algorithm not in allowed:
            violations.append(
                f"Rule {index} uses {algorithm}; expected one of {', '.join(sorted(allowed))}"
            )
        elif algorithm in KMS_ALGORITHMS and default.get("kmsMasterKeyId") == "":
            violations.append(f"Rule {index} uses {algorithm} without a customer-managed key")
    return violations


def check_public_access_block(props: Dict[str, Any]) -> List[str]:
    """All four public access block flags must be enabled"""
    return [
        f"{flag} must be true"
        for flag in PUBLIC_ACCESS_FLAGS
        if props.get(flag) is False or (flag not in props)
    ]


def check_versioning(props: Dict[str, Any]) -> List[str]:
    config = props.get("versioningConfiguration")
    if not isinstance(config, dict):
        return []
    status = config.get("status")
    if isinstance(status, str) and status != "Enabled":
        return [f"Bucket versioning is {status}; expected Enabled"]
    return []


def check_key_rotation(props: Dict[str, Any]) -> List[str]:
    if props.get("enableKeyRotation") is False or "enableKeyRotation" not in props:
        return ["KMS key rotation must be enabled"]
    return []


def check_deletion_window(props: Dict[str, Any]) -> List[str]:
    window = props.get("deletionWindowInDays")
    if isinstance(window, bool) or not isinstance(window, (int, float)):
        return []
    if not 7 <= window <= 30:
        return [f"KMS deletion window {window:g} days is outside 7..30"]
    return []


def check_policy_wildcards(props: Dict[str, Any]) -> List[str]:
    """IAM policies must not grant wildcard actions or resources"""
    document = props.get("policy")
    if document == UNKNOWN:
        return []
    if isinstance(document, str):
        try:
            document = json.loads(document)
        except ValueError:
            return ["Policy document is not valid JSON"]
    if not isinstance(document, dict):
        return []

    violations = []
    for index, statement in enumerate(_as_list(document.get("Statement"))):
        if not isinstance(statement, dict) or statement.get("Effect") != "Allow":
            continue
        sid = statement.get("Sid") or f"#{index}"
        for action in _as_list(statement.get("Action")):
            if action == "*" or (isinstance(action, str) and action.endswith(":*")):
                violations.append(f"Statement {sid} allows wildcard action {action}")
        for resource in _as_list(statement.get("Resource")):
            if resource == "*":
                violations.append(f"Statement {sid} applies to every resource")
        if "NotAction" in statement:
            violations.append(f"Statement {sid} combines Allow with NotAction")
    return violations


def check_log_retention(props: Dict[str, Any]) -> List[str]:
    retention = props.get("retentionInDays")
    if retention is None or retention == 0:
        return ["Log group keeps events forever; set retentionInDays"]
    return []
