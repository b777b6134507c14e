"""Configuration management for cpfeedman."""

import re
from typing import Annotated

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

_SQS_HOST_RE = re.compile(r"^https?://sqs[.-]([a-z0-9-]+)\.amazonaws\.com", re.IGNORECASE)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="CPFEEDMAN_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Check Point Security Management API
    checkpoint_server: str = Field(
        default="",
        validation_alias=AliasChoices("CHECKPOINT_SERVER", "checkpoint_server"),
        description="Management server, e.g. 192.168.100.100 or tenant.maas.checkpoint.com",
    )
    checkpoint_cloud_mgmt_id: str = Field(
        default="",
        validation_alias=AliasChoices("CHECKPOINT_CLOUD_MGMT_ID", "checkpoint_cloud_mgmt_id"),
        description="Smart-1 Cloud management id (changes the API URL shape)",
    )
    checkpoint_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("CHECKPOINT_API_KEY", "checkpoint_api_key"),
        description="API key used for login",
    )
    # Off by default: the management plane is usually reached with a
    # self-signed certificate.
    checkpoint_verify_tls: bool = Field(
        default=False,
        validation_alias=AliasChoices("CHECKPOINT_VERIFY_TLS", "checkpoint_verify_tls"),
        description="Verify the management server TLS certificate (INSECURE when false)",
    )
    request_timeout: float = Field(
        default=60.0,
        description="HTTP timeout for a single management API call in seconds",
    )

    # Queue settings
    sqs_endpoint: str = Field(
        default="",
        description="SQS queue URL, e.g. https://sqs.us-east-1.amazonaws.com/123456789012/cpfeedman",
    )
    aws_region: str = Field(
        default="",
        validation_alias=AliasChoices("CPFEEDMAN_AWS_REGION", "AWS_REGION", "aws_region"),
        description="AWS region for the queue (derived from the queue URL when empty)",
    )
    queue_wait_seconds: int = Field(
        default=20,
        ge=0,
        le=20,
        description="Long-poll wait time for a single receive call",
    )
    queue_error_delay: float = Field(
        default=5.0,
        description="Delay before retrying after a failed receive call in seconds",
    )

    # Gateways to notify (parsed, not applied to kicks)
    notified_gateways: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Comma-separated list of gateways to notify, e.g. gw10,gw20",
    )

    # Task polling
    task_poll_interval: float = Field(
        default=1.0,
        gt=0,
        description="Seconds between show-task queries",
    )
    task_timeout: float = Field(
        default=120.0,
        description="Seconds to wait for script tasks before giving up",
    )

    # Orchestration
    inventory_on_startup: bool = Field(
        default=True,
        description="Run the feed inventory script on all gateways at startup",
    )
    wait_for_kick: bool = Field(
        default=False,
        description="Poll kick tasks to completion before taking the next message",
    )

    @field_validator("notified_gateways", mode="before")
    @classmethod
    def _split_gateways(cls, value: object) -> object:
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @property
    def api_url(self) -> str:
        """Base URL of the management web API, with a trailing slash."""
        if self.checkpoint_cloud_mgmt_id:
            return f"https://{self.checkpoint_server}/{self.checkpoint_cloud_mgmt_id}/web_api/"
        return f"https://{self.checkpoint_server}/web_api/"

    def get_aws_region(self) -> str | None:
        """Get the queue region, falling back to the one in the queue URL.

        Returns:
            Region name like 'us-east-1' or None if it cannot be determined
        """
        if self.aws_region:
            return self.aws_region
        match = _SQS_HOST_RE.match(self.sqs_endpoint)
        return match.group(1) if match else None

    def missing_required(self, need_queue: bool = True) -> list[str]:
        """List the environment variables that must be set but are empty."""
        missing = []
        if not self.checkpoint_server:
            missing.append("CHECKPOINT_SERVER")
        if not self.checkpoint_api_key:
            missing.append("CHECKPOINT_API_KEY")
        if need_queue and not self.sqs_endpoint:
            missing.append("CPFEEDMAN_SQS_ENDPOINT")
        return missing
