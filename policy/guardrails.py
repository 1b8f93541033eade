"""
Guardrail policies evaluated against the declared storage-lab resources
"""

from pulumi_policy import (
    EnforcementLevel,
    ReportViolation,
    ResourceValidationArgs,
    ResourceValidationPolicy,
)

from rules import (
    IAM_POLICY,
    KMS_KEY,
    LOG_GROUP,
    S3_BUCKET_ENCRYPTION,
    S3_BUCKET_VERSIONING,
    S3_PUBLIC_ACCESS_BLOCK,
    check_bucket_encryption,
    check_deletion_window,
    check_key_rotation,
    check_log_retention,
    check_policy_wildcards,
    check_public_access_block,
    check_versioning,
)

# Access-log targets cannot use SSE-KMS; matches "<prefix>-logs" + "-encryption"
LOG_BUCKET_SUFFIX = "-logs-encryption"


def resource_validator(resource_type, check):
    """Adapt a property check into a validator for a single resource type"""

    def validate(args: ResourceValidationArgs, report_violation: ReportViolation):
        if args.resource_type != resource_type:
            return
        for message in check(args):
            report_violation(message)

    return validate


validate_bucket_encryption = resource_validator(
    S3_BUCKET_ENCRYPTION,
    lambda args: check_bucket_encryption(args.props, allow_aes256=args.name.endswith(LOG_BUCKET_SUFFIX)),
)
validate_public_access_block = resource_validator(S3_PUBLIC_ACCESS_BLOCK, lambda args: check_public_access_block(args.props))
validate_versioning = resource_validator(S3_BUCKET_VERSIONING, lambda args: check_versioning(args.props))
validate_key_rotation = resource_validator(KMS_KEY, lambda args: check_key_rotation(args.props))
validate_deletion_window = resource_validator(KMS_KEY, lambda args: check_deletion_window(args.props))
validate_policy_wildcards = resource_validator(IAM_POLICY, lambda args: check_policy_wildcards(args.props))
validate_log_retention = resource_validator(LOG_GROUP, lambda args: check_log_retention(args.props))


POLICIES = [
    ResourceValidationPolicy(
        name="s3-kms-encryption",
        description="S3 buckets must encrypt objects with a customer-managed KMS key.",
        enforcement_level=EnforcementLevel.MANDATORY,
        validate=validate_bucket_encryption,
    ),
    ResourceValidationPolicy(
        name="s3-public-access-blocked",
        description="S3 buckets must block all public access.",
        enforcement_level=EnforcementLevel.MANDATORY,
        validate=validate_public_access_block,
    ),
    ResourceValidationPolicy(
        name="s3-versioning-enabled",
        description="S3 bucket versioning should be enabled.",
        enforcement_level=EnforcementLevel.ADVISORY,
        validate=validate_versioning,
    ),
    ResourceValidationPolicy(
        name="kms-key-rotation",
        description="KMS keys must have automatic rotation enabled.",
        enforcement_level=EnforcementLevel.MANDATORY,
        validate=validate_key_rotation,
    ),
    ResourceValidationPolicy(
        name="kms-deletion-window",
        description="KMS key deletion window should be between 7 and 30 days.",
        enforcement_level=EnforcementLevel.ADVISORY,
        validate=validate_deletion_window,
    ),
    ResourceValidationPolicy(
        name="iam-no-wildcards",
        description="IAM policies must not allow wildcard actions or resources.",
        enforcement_level=EnforcementLevel.MANDATORY,
        validate=validate_policy_wildcards,
    ),
    ResourceValidationPolicy(
        name="log-group-retention",
        description="CloudWatch log groups should set a retention period.",
        enforcement_level=EnforcementLevel.ADVISORY,
        validate=validate_log_retention,
    ),
]
