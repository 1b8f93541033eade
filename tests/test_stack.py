"""
Unit tests for the automation driver
"""

import tempfile
import unittest
from unittest.mock import Mock, patch
from pathlib import Path
import sys
import os

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pulumi import automation as auto

from ops import stack
from ops.errors import StackError, StateLockedError
from ops.settings import Settings


class FakeCommandResult:
    def __init__(self, stderr, code=255):
        self.stdout = ""
        self.stderr = stderr
        self.code = code

    def __str__(self):
        return f"\n code: {self.code}\n stdout: \n stderr: {self.stderr}"


class StackTestCase(unittest.TestCase):
    """Runs every test against a temporary project dir and a mocked stack"""

    def setUp(self):
        self.tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self.tmp.cleanup)
        self.settings = Settings.model_validate(dict(project_dir=Path(self.tmp.name)))
        self.mock_stack = Mock()
        patcher = patch.object(stack.auto, "create_or_select_stack", return_value=self.mock_stack)
        self.mock_select = patcher.start()
        self.addCleanup(patcher.stop)


class TestSelectStack(StackTestCase):

    def test_configures_provider_for_emulator(self):
        stack.select_stack(self.settings)

        kwargs = self.mock_select.call_args.kwargs
        self.assertEqual(kwargs["stack_name"], "localstack")
        self.assertEqual(kwargs["work_dir"], self.tmp.name)
        self.assertEqual(kwargs["opts"].env_vars["PULUMI_BACKEND_URL"], self.settings.backend_url)

        config = {c.args[0]: c.args[1].value for c in self.mock_stack.set_config.call_args_list}
        self.assertEqual(config["aws:endpoints[0].s3"], "http://localhost:4566")
        self.assertEqual(config["aws:s3UsePathStyle"], "true")
        for call in self.mock_stack.set_config.call_args_list:
            self.assertTrue(call.kwargs["path"])

        # File backend directory is created on demand
        self.assertTrue(self.settings.state_dir.is_dir())

    def test_without_configuration(self):
        stack.select_stack(self.settings, configure=False)
        self.mock_stack.set_config.assert_not_called()

    def test_select_failure_is_classified(self):
        self.mock_select.side_effect = auto.CommandError(FakeCommandResult("error: no Pulumi.yaml project file found"))

        with self.assertRaises(StackError) as ctx:
            stack.select_stack(self.settings)
        self.assertIn("no Pulumi.yaml", ctx.exception.message)


class TestOperations(StackTestCase):

    def test_preview_passes_policy_packs(self):
        stack.preview(self.settings, policy_packs=[Path("/work/lab/policy")])
        self.assertEqual(self.mock_stack.preview.call_args.kwargs["policy_packs"], ["/work/lab/policy"])

    def test_preview_without_policy_packs(self):
        stack.preview(self.settings)
        self.assertNotIn("policy_packs", self.mock_stack.preview.call_args.kwargs)

    def test_up_returns_plain_outputs(self):
        self.mock_stack.up.return_value = Mock(outputs={
            "bucket_name": auto.OutputValue(value="lab-site", secret=False),
            "kms_key_arn": auto.OutputValue(value="arn:aws:kms:key", secret=False),
        })

        self.assertEqual(stack.up(self.settings), {"bucket_name": "lab-site", "kms_key_arn": "arn:aws:kms:key"})

    def test_up_locked(self):
        self.mock_stack.up.side_effect = auto.ConcurrentUpdateError(FakeCommandResult("conflict"))

        with self.assertRaises(StateLockedError):
            stack.up(self.settings)

    def test_destroy_and_remove(self):
        stack.destroy(self.settings, remove=True)

        self.mock_stack.destroy.assert_called_once()
        self.mock_stack.workspace.remove_stack.assert_called_once_with("localstack")

    def test_destroy_keeps_stack_by_default(self):
        stack.destroy(self.settings)
        self.mock_stack.workspace.remove_stack.assert_not_called()


class TestState(StackTestCase):

    def test_state_resources_skip_internal(self):
        state = {"resources": [
            {"type": "pulumi:pulumi:Stack", "urn": "urn:stack"},
            {"type": "pulumi:providers:aws", "urn": "urn:provider", "id": "p"},
            {"type": "aws:s3/bucket:Bucket", "urn": "urn:bucket", "id": "lab-site"},
        ]}

        resources = stack.state_resources(state)

        self.assertEqual(resources, [{"type": "aws:s3/bucket:Bucket", "urn": "urn:bucket", "id": "lab-site"}])

    def test_export_state(self):
        self.mock_stack.export_stack.return_value = auto.Deployment(version=3, deployment={"resources": []})
        self.assertEqual(stack.export_state(self.settings), {"resources": []})

    def test_clear_pending_operations(self):
        checkpoint = {
            "resources": [],
            "pending_operations": [
                {"type": "creating", "resource": {"urn": "urn:bucket"}},
                {"type": "updating", "resource": {"urn": "urn:key"}},
            ],
        }
        self.mock_stack.export_stack.return_value = auto.Deployment(version=3, deployment=checkpoint)

        dropped = stack.clear_pending_operations(self.settings)

        self.assertEqual(dropped, 2)
        imported = self.mock_stack.import_stack.call_args.args[0]
        self.assertEqual(imported.deployment["pending_operations"], [])

    def test_clear_pending_operations_noop(self):
        self.mock_stack.export_stack.return_value = auto.Deployment(version=3, deployment={"resources": []})

        self.assertEqual(stack.clear_pending_operations(self.settings), 0)
        self.mock_stack.import_stack.assert_not_called()

    def test_unlock_removes_lock_files(self):
        self.mock_stack.cancel.side_effect = auto.CommandError(FakeCommandResult("cancel not supported"))
        lock_dir = self.settings.state_dir / ".pulumi" / "locks" / "organization" / "storage-lab" / "localstack"
        lock_dir.mkdir(parents=True)
        lock_file = lock_dir / "0b1c.json"
        lock_file.write_text("{}")
        other_stack = self.settings.state_dir / ".pulumi" / "locks" / "organization" / "storage-lab" / "dev"
        other_stack.mkdir(parents=True)
        (other_stack / "9f.json").write_text("{}")

        removed = stack.unlock(self.settings)

        self.assertEqual(removed, [lock_file])
        self.assertFalse(lock_file.exists())
        self.assertTrue((other_stack / "9f.json").exists())


if __name__ == "__main__":
    unittest.main()
