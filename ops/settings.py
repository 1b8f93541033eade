"""Environment-driven settings for the orchestration commands."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping, Optional, Tuple

from pydantic import AliasChoices, Field, ValidationError, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

PROJECT_DIR = Path(__file__).resolve().parents[1]

# Services the stack talks to; used both for health checks and provider endpoints
REQUIRED_SERVICES = ("s3", "kms", "iam", "sts", "logs")

# pulumi-aws endpoint keys differ from LocalStack service names in places
PROVIDER_ENDPOINT_KEYS = {
    "s3": "s3",
    "kms": "kms",
    "iam": "iam",
    "sts": "sts",
    "logs": "cloudwatchlogs",
}


class Settings(BaseSettings):
    """Resolved orchestration settings.

    Each field reads the environment variable named by its alias; field names
    are accepted too so callers can pass plain keyword values.
    """

    model_config = SettingsConfigDict(
        frozen=True,
        populate_by_name=True,
        validate_default=True,
        extra="ignore",
        env_prefix="STORAGE_LAB_",
    )

    endpoint: str = Field(default="http://localhost:4566", validation_alias="LOCALSTACK_ENDPOINT")
    region: str = Field(default="us-east-1", validation_alias=AliasChoices("AWS_REGION", "AWS_DEFAULT_REGION"))
    access_key: str = Field(default="test", validation_alias="AWS_ACCESS_KEY_ID")
    secret_key: str = Field(default="test", validation_alias="AWS_SECRET_ACCESS_KEY")
    stack_name: str = Field(default="localstack", validation_alias="STACK_NAME")
    # Must precede the fields derived from it
    project_dir: Path = Field(default=PROJECT_DIR, validation_alias="PROJECT_DIR")
    backend_url: str = Field(default="", validation_alias="PULUMI_BACKEND_URL")
    config_passphrase: str = Field(default="localstack", validation_alias="PULUMI_CONFIG_PASSPHRASE")
    compose_file: Optional[Path] = Field(default=None, validation_alias="COMPOSE_FILE")
    site_dir: Optional[Path] = Field(default=None, validation_alias="SITE_DIR")
    site_build_command: str = Field(default="npm run build", validation_alias="SITE_BUILD_COMMAND")
    site_dist_dir: str = Field(default="dist", validation_alias="SITE_DIST_DIR")
    reports_dir: Optional[Path] = Field(default=None, validation_alias="REPORTS_DIR")
    health_timeout: float = Field(default=90.0, gt=0, validation_alias="HEALTH_TIMEOUT")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    required_services: Tuple[str, ...] = REQUIRED_SERVICES

    @field_validator("endpoint")
    @classmethod
    def strip_endpoint(cls, v: str) -> str:
        return v.rstrip("/")

    @field_validator("log_level")
    @classmethod
    def upper_log_level(cls, v: str) -> str:
        return v.upper()

    @field_validator("region", mode="before")
    @classmethod
    def default_region(cls, v):
        return v or "us-east-1"

    @field_validator("project_dir", mode="before")
    @classmethod
    def default_project_dir(cls, v):
        return v or PROJECT_DIR

    @field_validator("backend_url", mode="before")
    @classmethod
    def default_backend_url(cls, v, info: ValidationInfo):
        if v:
            return v
        return f"file://{_project_dir(info) / '.pulumi-state'}"

    @field_validator("compose_file", "site_dir", "reports_dir", mode="before")
    @classmethod
    def default_project_path(cls, v, info: ValidationInfo):
        if v:
            return v
        names = {"compose_file": "docker-compose.yml", "site_dir": "site", "reports_dir": "reports"}
        return _project_dir(info) / names[info.field_name]

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        """Build settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            Settings instance

        Raises:
            ConfigurationError: If a value fails validation
        """
        try:
            if environ is None:
                return cls()
            # model_validate skips the environment sources
            return cls.model_validate(dict(environ))
        except ValidationError as e:
            raise _configuration_error(e) from e

    def with_overrides(self, **changes: Any) -> Settings:
        """Return a copy with the non-None values in changes applied."""
        values = {**self.model_dump(), **{k: v for k, v in changes.items() if v is not None}}
        try:
            return type(self).model_validate(values)
        except ValidationError as e:
            raise _configuration_error(e) from e

    @property
    def project_name(self) -> str:
        """Pulumi project name from Pulumi.yaml."""
        return "storage-lab"

    @property
    def dist_path(self) -> Path:
        return Path(self.site_dir) / self.site_dist_dir

    @property
    def policy_pack_dir(self) -> Path:
        return self.project_dir / "policy"

    @property
    def is_file_backend(self) -> bool:
        return self.backend_url.startswith("file://")

    @property
    def state_dir(self) -> Path | None:
        """Local directory holding state for file:// backends."""
        if not self.is_file_backend:
            return None
        return Path(self.backend_url[len("file://"):]).expanduser()

    def pulumi_env(self) -> dict[str, str]:
        """Environment variables handed to the Pulumi workspace."""
        return {
            "PULUMI_BACKEND_URL": self.backend_url,
            "PULUMI_CONFIG_PASSPHRASE": self.config_passphrase,
            "PULUMI_SKIP_UPDATE_CHECK": "true",
            "AWS_ACCESS_KEY_ID": self.access_key,
            "AWS_SECRET_ACCESS_KEY": self.secret_key,
            "AWS_REGION": self.region,
        }

    def stack_config(self) -> dict[str, str]:
        """Provider configuration pointing every used service at the emulator.

        Keys are config paths (set with path=True), values are plain strings.
        """
        config = {
            "aws:region": self.region,
            "aws:accessKey": self.access_key,
            "aws:secretKey": self.secret_key,
            "aws:skipCredentialsValidation": "true",
            "aws:skipRequestingAccountId": "true",
            "aws:skipMetadataApiCheck": "true",
            "aws:s3UsePathStyle": "true",
        }
        for service in self.required_services:
            key = PROVIDER_ENDPOINT_KEYS.get(service, service)
            config[f"aws:endpoints[0].{key}"] = self.endpoint
        return config

    def website_url(self, bucket_name: str) -> str:
        """URL serving the bucket's website through the emulator."""
        host = self.endpoint.split("://", 1)[-1]
        scheme = self.endpoint.split("://", 1)[0] if "://" in self.endpoint else "http"
        return f"{scheme}://{bucket_name}.s3-website.{host}"

    def as_dict(self) -> dict[str, Any]:
        return {
            "endpoint": self.endpoint,
            "region": self.region,
            "access_key": self.access_key,
            "secret_key": self.secret_key,
            "stack_name": self.stack_name,
            "backend_url": self.backend_url,
            "config_passphrase": self.config_passphrase,
            "project_dir": str(self.project_dir),
            "site_dir": str(self.site_dir),
            "reports_dir": str(self.reports_dir),
        }


def _project_dir(info: ValidationInfo) -> Path:
    return Path(info.data.get("project_dir") or PROJECT_DIR)


def _configuration_error(error: ValidationError) -> ConfigurationError:
    problems = "; ".join(
        f"{'.'.join(str(part) for part in item['loc'])}: {item['msg']}" for item in error.errors()
    )
    return ConfigurationError(
        f"Invalid settings: {problems}",
        hint="Fix or unset the environment variables named above (e.g. HEALTH_TIMEOUT=120).",
    )
