"""
Storage Guardrails - CrossGuard policy pack for the storage-lab stack
Run with: pulumi preview --policy-pack policy
"""

from pulumi_policy import EnforcementLevel, PolicyPack

from guardrails import POLICIES

PolicyPack(
    name="storage-lab-guardrails",
    enforcement_level=EnforcementLevel.ADVISORY,
    policies=POLICIES,
)
