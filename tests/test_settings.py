"""
Unit tests for orchestration settings and logging helpers
"""

import unittest
from unittest.mock import patch
from pathlib import Path
import sys
import os

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pydantic import ValidationError

from ops.errors import ConfigurationError
from ops.logging import sanitize
from ops.settings import Settings


class TestSettingsFromEnv(unittest.TestCase):

    def test_defaults(self):
        settings = Settings.from_env({"PROJECT_DIR": "/work/lab"})

        self.assertEqual(settings.endpoint, "http://localhost:4566")
        self.assertEqual(settings.region, "us-east-1")
        self.assertEqual(settings.stack_name, "localstack")
        self.assertEqual(settings.backend_url, "file:///work/lab/.pulumi-state")
        self.assertEqual(settings.compose_file, Path("/work/lab/docker-compose.yml"))
        self.assertEqual(settings.site_dir, Path("/work/lab/site"))
        self.assertEqual(settings.dist_path, Path("/work/lab/site/dist"))
        self.assertEqual(settings.reports_dir, Path("/work/lab/reports"))
        self.assertEqual(settings.policy_pack_dir, Path("/work/lab/policy"))
        self.assertEqual(settings.health_timeout, 90.0)

    def test_environment_overrides(self):
        settings = Settings.from_env({
            "PROJECT_DIR": "/work/lab",
            "LOCALSTACK_ENDPOINT": "http://localstack:4566/",
            "AWS_DEFAULT_REGION": "eu-central-1",
            "STACK_NAME": "ci",
            "PULUMI_BACKEND_URL": "s3://state-bucket",
            "SITE_DIR": "/srv/frontend",
            "SITE_DIST_DIR": "build",
            "HEALTH_TIMEOUT": "30",
            "LOG_LEVEL": "debug",
        })

        self.assertEqual(settings.endpoint, "http://localstack:4566")
        self.assertEqual(settings.region, "eu-central-1")
        self.assertEqual(settings.stack_name, "ci")
        self.assertEqual(settings.backend_url, "s3://state-bucket")
        self.assertFalse(settings.is_file_backend)
        self.assertIsNone(settings.state_dir)
        self.assertEqual(settings.dist_path, Path("/srv/frontend/build"))
        self.assertEqual(settings.health_timeout, 30.0)
        self.assertEqual(settings.log_level, "DEBUG")

    def test_invalid_timeout(self):
        with self.assertRaises(ConfigurationError) as ctx:
            Settings.from_env({"HEALTH_TIMEOUT": "soon"})
        self.assertIn("HEALTH_TIMEOUT", ctx.exception.message)
        self.assertIsNotNone(ctx.exception.hint)

    def test_non_positive_timeout(self):
        with self.assertRaises(ConfigurationError):
            Settings.from_env({"HEALTH_TIMEOUT": "0"})

    def test_region_prefers_aws_region(self):
        settings = Settings.from_env({"AWS_REGION": "eu-west-1", "AWS_DEFAULT_REGION": "eu-central-1"})
        self.assertEqual(settings.region, "eu-west-1")

    def test_blank_values_fall_back_to_defaults(self):
        settings = Settings.from_env({"PROJECT_DIR": "/work/lab", "AWS_REGION": "", "SITE_DIR": ""})
        self.assertEqual(settings.region, "us-east-1")
        self.assertEqual(settings.site_dir, Path("/work/lab/site"))

    def test_reads_process_environment(self):
        with patch.dict(os.environ, {"STACK_NAME": "from-env", "LOG_LEVEL": "warning"}):
            settings = Settings.from_env()
        self.assertEqual(settings.stack_name, "from-env")
        self.assertEqual(settings.log_level, "WARNING")

    def test_unrelated_variables_ignored(self):
        settings = Settings.from_env({"PROJECT_DIR": "/work/lab", "HOME": "/root", "PATH": "/usr/bin"})
        self.assertEqual(settings.project_dir, Path("/work/lab"))

    def test_with_overrides_ignores_none(self):
        settings = Settings.from_env({"PROJECT_DIR": "/work/lab"})
        changed = settings.with_overrides(stack_name="dev", endpoint=None)

        self.assertEqual(changed.stack_name, "dev")
        self.assertEqual(changed.endpoint, settings.endpoint)

    def test_with_overrides_normalizes_values(self):
        settings = Settings.from_env({"PROJECT_DIR": "/work/lab"})
        changed = settings.with_overrides(endpoint="http://127.0.0.1:4566/", log_level="debug")

        self.assertEqual(changed.endpoint, "http://127.0.0.1:4566")
        self.assertEqual(changed.log_level, "DEBUG")
        self.assertEqual(changed.site_dir, Path("/work/lab/site"))

    def test_settings_are_frozen(self):
        settings = Settings.from_env({"PROJECT_DIR": "/work/lab"})
        with self.assertRaises(ValidationError):
            settings.stack_name = "other"


class TestEngineConfiguration(unittest.TestCase):

    def test_stack_config_points_services_at_emulator(self):
        settings = Settings.model_validate(dict(project_dir=Path("/work/lab"), endpoint="http://127.0.0.1:4566"))
        config = settings.stack_config()

        self.assertEqual(config["aws:region"], "us-east-1")
        self.assertEqual(config["aws:skipCredentialsValidation"], "true")
        self.assertEqual(config["aws:s3UsePathStyle"], "true")
        for key in ("s3", "kms", "iam", "sts", "cloudwatchlogs"):
            self.assertEqual(config[f"aws:endpoints[0].{key}"], "http://127.0.0.1:4566")
        self.assertNotIn("aws:endpoints[0].logs", config)

    def test_pulumi_env(self):
        settings = Settings.model_validate(dict(project_dir=Path("/work/lab"), config_passphrase="secret"))
        env = settings.pulumi_env()

        self.assertEqual(env["PULUMI_BACKEND_URL"], "file:///work/lab/.pulumi-state")
        self.assertEqual(env["PULUMI_CONFIG_PASSPHRASE"], "secret")
        self.assertEqual(env["AWS_ACCESS_KEY_ID"], "test")

    def test_state_dir_for_file_backend(self):
        settings = Settings.model_validate(dict(project_dir=Path("/work/lab")))
        self.assertEqual(settings.state_dir, Path("/work/lab/.pulumi-state"))

    def test_website_url(self):
        settings = Settings.model_validate(dict(endpoint="http://localhost:4566"))
        self.assertEqual(settings.website_url("site"), "http://site.s3-website.localhost:4566")


class TestSanitize(unittest.TestCase):

    def test_secret_fields_redacted(self):
        settings = Settings.model_validate(dict(project_dir=Path("/work/lab"), secret_key="hunter2"))
        sanitized = sanitize(settings.as_dict())

        self.assertEqual(sanitized["secret_key"], "***REDACTED***")
        self.assertEqual(sanitized["access_key"], "***REDACTED***")
        self.assertEqual(sanitized["config_passphrase"], "***REDACTED***")
        self.assertEqual(sanitized["stack_name"], "localstack")


if __name__ == "__main__":
    unittest.main()
