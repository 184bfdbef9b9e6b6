"""Deployment settings for the serial Step Functions app."""

import logging
import os
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class DeploymentSettings(BaseSettings):
    """Settings read from ``SERIAL_SFN_*`` environment variables or ``.env``."""

    stack_name: str = Field(
        default="SerialSfnStack",
        description="Name of the CloudFormation stack",
    )
    account: Optional[str] = Field(
        default=None,
        description="Target AWS account, defaults to CDK_DEFAULT_ACCOUNT",
    )
    region: Optional[str] = Field(
        default=None,
        description="Target AWS region, defaults to CDK_DEFAULT_REGION",
    )
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Log level for synthesis and for the Lambda functions",
    )
    lambda_memory_size: int = Field(
        default=128,
        ge=128,
        le=10240,
        description="Memory of each step function in MB",
    )
    lambda_timeout_seconds: int = Field(
        default=30,
        ge=1,
        le=900,
        description="Timeout of each step function in seconds",
    )

    model_config = SettingsConfigDict(
        env_prefix="SERIAL_SFN_",
        env_file=".env",
        extra="ignore",
    )

    @property
    def target_account(self) -> Optional[str]:
        return self.account or os.environ.get("CDK_DEFAULT_ACCOUNT")

    @property
    def target_region(self) -> Optional[str]:
        return self.region or os.environ.get("CDK_DEFAULT_REGION")

    @property
    def log_level_value(self) -> int:
        return getattr(logging, self.log_level)
