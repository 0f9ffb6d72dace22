###########################################
# --- Event / target / outcome models --- #
###########################################

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
)

DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_BASE_DELAY = 0.5
DEFAULT_RETRY_MULTIPLIER = 2.0
DEFAULT_RETRY_MAX_DELAY = 8.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ImagePublishedEvent(BaseModel):
    """A new image landed in the registry under a tag."""
    repository_identifier: str = Field(
        default="",
        validation_alias=AliasChoices("repository_identifier", "repositoryIdentifier"),
        description="Registry repository the image was pushed to.",
        json_schema_extra={"example": "app"},
    )
    image_tag: str = Field(
        default="",
        validation_alias=AliasChoices("image_tag", "imageTag"),
        description="Tag the image was pushed under.",
        json_schema_extra={"example": "release"},
    )
    pushed_at: datetime = Field(
        default_factory=_utcnow,
        validation_alias=AliasChoices("pushed_at", "pushedAt"),
        description="When the registry accepted the push.",
    )
    digest: str = Field(
        default="",
        description="Content digest of the pushed image.",
        json_schema_extra={"example": "sha256:9f86d081884c7d659a2feaa0c55ad015"},
    )

    model_config = ConfigDict(frozen=True)


class DeploymentTarget(BaseModel):
    """ECS service that should be redeployed when its tag is pushed."""
    cluster_identifier: str = Field(
        default="",
        validation_alias=AliasChoices("cluster_identifier", "clusterIdentifier", "cluster"),
    )
    service_identifier: str = Field(
        default="",
        validation_alias=AliasChoices("service_identifier", "serviceIdentifier", "service"),
    )
    expected_tag: str = Field(
        validation_alias=AliasChoices("expected_tag", "expectedTag", "tag"),
    )
    repository_identifier: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("repository_identifier", "repositoryIdentifier", "repository"),
        description="Only react to pushes from this repository. None matches any repository.",
    )

    model_config = ConfigDict(frozen=True)

    def matches(self, event: ImagePublishedEvent) -> bool:
        """Exact, case-sensitive tag match plus the optional repository scope."""
        if event.image_tag != self.expected_tag:
            return False
        if self.repository_identifier and event.repository_identifier != self.repository_identifier:
            return False
        return True


class OutcomeStatus(str, Enum):
    SKIPPED = "skipped"
    TRIGGERED = "triggered"


class DeploymentOutcome(BaseModel):
    """Result of handling one event against one target."""
    status: OutcomeStatus
    service_identifier: Optional[str] = None
    cluster_identifier: Optional[str] = None
    deployment_id: Optional[str] = None
    attempts: int = 0
    reason: Optional[str] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def skipped(cls, reason: str) -> "DeploymentOutcome":
        return cls(status=OutcomeStatus.SKIPPED, reason=reason)

    @classmethod
    def triggered(cls, target: DeploymentTarget, deployment_id: Optional[str] = None,
                  attempts: int = 1) -> "DeploymentOutcome":
        return cls(
            status=OutcomeStatus.TRIGGERED,
            service_identifier=target.service_identifier,
            cluster_identifier=target.cluster_identifier,
            deployment_id=deployment_id,
            attempts=attempts,
        )

    @property
    def is_triggered(self) -> bool:
        return self.status == OutcomeStatus.TRIGGERED


class RetryPolicy(BaseModel):
    """Bounded exponential backoff for transient control plane failures."""
    max_retries: int = Field(DEFAULT_MAX_RETRIES, ge=0)
    base_delay: float = Field(DEFAULT_RETRY_BASE_DELAY, ge=0)
    multiplier: float = Field(DEFAULT_RETRY_MULTIPLIER, ge=1)
    max_delay: float = Field(DEFAULT_RETRY_MAX_DELAY, ge=0)

    model_config = ConfigDict(frozen=True)

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, retry_number: int) -> float:
        """Delay in seconds before retry ``retry_number`` (1-based)."""
        return min(self.max_delay, self.base_delay * self.multiplier ** (retry_number - 1))
