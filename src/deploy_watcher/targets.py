"""Load deployment targets once at startup."""
import json
import logging
from pathlib import Path
from typing import Any, List, Tuple

from pydantic import ValidationError as PydanticValidationError

from deploy_watcher.errors import ConfigurationError
from deploy_watcher.schemas import DeploymentTarget, RetryPolicy
from deploy_watcher.settings import Settings

logger = logging.getLogger(__name__)


def load_targets(settings: Settings) -> Tuple[DeploymentTarget, ...]:
    """Build the immutable target list.

    Sources, first one configured wins:
    1. DEPLOY_TARGETS_FILE - JSON file holding a list of targets
    2. DEPLOY_TARGETS - the same list inline
    3. ECS_CLUSTER_NAME / ECS_SERVICE_NAME / EXPECTED_IMAGE_TAG

    Raises:
        ConfigurationError: nothing configured, unreadable JSON or invalid records
    """
    if settings.deploy_targets_file:
        path = Path(settings.deploy_targets_file)
        try:
            records = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise ConfigurationError(f"Cannot read targets file {path}: {e}") from e
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Targets file {path} is not valid JSON: {e}") from e
        source = str(path)
    elif settings.deploy_targets:
        try:
            records = json.loads(settings.deploy_targets)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"DEPLOY_TARGETS is not valid JSON: {e}") from e
        source = "DEPLOY_TARGETS"
    elif settings.ecs_cluster_name and settings.ecs_service_name:
        records = [{
            "cluster_identifier": settings.ecs_cluster_name,
            "service_identifier": settings.ecs_service_name,
            "expected_tag": settings.expected_image_tag,
            "repository_identifier": settings.ecr_repository_name or None,
        }]
        source = "environment"
    else:
        raise ConfigurationError(
            "No deployment targets configured: set DEPLOY_TARGETS_FILE, DEPLOY_TARGETS "
            "or ECS_CLUSTER_NAME and ECS_SERVICE_NAME"
        )

    targets = _parse_records(records, source)
    logger.info(f"Loaded {len(targets)} deployment target(s) from {source}")
    for target in targets:
        scope = target.repository_identifier or "*"
        logger.debug(f"  {scope}:{target.expected_tag} -> {target.cluster_identifier}/{target.service_identifier}")
    return targets


def _parse_records(records: Any, source: str) -> Tuple[DeploymentTarget, ...]:
    if isinstance(records, dict):
        records = [records]
    if not isinstance(records, list) or not records:
        raise ConfigurationError(f"Expected a non-empty list of targets in {source}")

    targets: List[DeploymentTarget] = []
    for index, record in enumerate(records):
        try:
            target = DeploymentTarget.model_validate(record)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Invalid target #{index} in {source}: {e}") from e
        if not target.cluster_identifier or not target.service_identifier or not target.expected_tag:
            raise ConfigurationError(
                f"Target #{index} in {source} needs cluster, service and expected tag"
            )
        targets.append(target)
    return tuple(targets)


def retry_policy_from_settings(settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        max_retries=settings.max_retries,
        base_delay=settings.retry_base_delay,
        max_delay=settings.retry_max_delay,
    )
