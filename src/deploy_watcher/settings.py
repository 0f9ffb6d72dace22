# src/deploy_watcher/settings.py
from typing import Optional
from pydantic import Field, validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """
    Single source of truth for all watcher settings.

    Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    Usage:
        from deploy_watcher.settings import get_settings
        settings = get_settings()
        cluster = settings.ecs_cluster_name
    """

    # Deployment Mode
    deployment_mode: str = Field(
        default="aws-prod",
        description="Deployment mode: local-dev, aws-mock, or aws-prod"
    )

    # AWS Core Settings
    aws_region: str = Field(
        default="us-east-1",
        alias="AWS_DEFAULT_REGION"
    )

    aws_access_key_id: Optional[str] = Field(
        default=None,
        alias="AWS_ACCESS_KEY_ID"
    )

    aws_secret_access_key: Optional[str] = Field(
        default=None,
        alias="AWS_SECRET_ACCESS_KEY"
    )

    aws_session_token: Optional[str] = Field(
        default=None,
        alias="AWS_SESSION_TOKEN"
    )

    aws_endpoint_url: Optional[str] = Field(
        default=None,
        alias="AWS_ENDPOINT_URL"
    )

    # Single-target configuration (same variables the scaling Lambdas use)
    ecs_cluster_name: Optional[str] = Field(
        default=None,
        alias="ECS_CLUSTER_NAME",
        description="ECS cluster to redeploy"
    )

    ecs_service_name: Optional[str] = Field(
        default=None,
        alias="ECS_SERVICE_NAME",
        description="ECS service to redeploy"
    )

    expected_image_tag: str = Field(
        default="latest",
        alias="EXPECTED_IMAGE_TAG",
        description="Image tag that triggers a redeploy"
    )

    ecr_repository_name: Optional[str] = Field(
        default=None,
        alias="ECR_REPOSITORY_NAME",
        description="Restrict the single target to one ECR repository"
    )

    # Multi-target configuration
    deploy_targets: Optional[str] = Field(
        default=None,
        alias="DEPLOY_TARGETS",
        description="JSON list of deployment targets"
    )

    deploy_targets_file: Optional[str] = Field(
        default=None,
        alias="DEPLOY_TARGETS_FILE",
        description="Path to a JSON file with a list of deployment targets"
    )

    # Retry / timeout configuration
    max_retries: int = Field(
        default=3,
        ge=0,
        description="Immediate retries for transient control plane failures"
    )

    retry_base_delay: float = Field(
        default=0.5,
        ge=0,
        description="Delay before the first retry in seconds"
    )

    retry_max_delay: float = Field(
        default=8.0,
        ge=0,
        description="Upper bound for a single backoff delay in seconds"
    )

    request_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Connect/read timeout for control plane calls in seconds"
    )

    dry_run: bool = Field(
        default=False,
        description="Log redeploys instead of calling ECS"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @validator('deployment_mode', pre=True)
    def normalize_deployment_mode(cls, v):
        """Normalize deployment mode values for backwards compatibility."""
        if v:
            mode_mapping = {
                "local-mock": "local-dev",
                "cloud": "aws-prod",
            }
            return mode_mapping.get(v, v)
        return v

    @validator('deployment_mode')
    def validate_deployment_mode(cls, v):
        """Validate deployment mode is one of the allowed values."""
        valid_modes = ["local-dev", "aws-mock", "aws-prod"]
        if v not in valid_modes:
            raise ValueError(f"Invalid deployment_mode: {v}. Must be one of {valid_modes}")
        return v

    @validator('aws_endpoint_url', always=True)
    def set_endpoint_url_based_on_mode(cls, v, values):
        """Auto-set endpoint URL based on deployment mode if not explicitly provided."""
        if v is None and 'deployment_mode' in values:
            mode = values['deployment_mode']
            if mode in ["local-dev", "aws-mock"]:
                return "http://localhost:5000"
        return v

    @validator('aws_access_key_id', 'aws_secret_access_key', always=True)
    def set_mock_credentials_for_local_modes(cls, v, values):
        """Auto-set mock credentials for local modes if not provided."""
        if v is None and 'deployment_mode' in values:
            mode = values['deployment_mode']
            if mode in ["local-dev", "aws-mock"]:
                return "mock"
        return v

    @validator('log_level')
    def normalize_log_level(cls, v):
        return v.upper()

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()
