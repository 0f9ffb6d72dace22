"""
Lambda entry point for the EventBridge rule on ECR pushes.

Environment (see settings.py):
- ECS_CLUSTER_NAME / ECS_SERVICE_NAME / EXPECTED_IMAGE_TAG for a single target
- DEPLOY_TARGETS or DEPLOY_TARGETS_FILE for several
- MAX_RETRIES, REQUEST_TIMEOUT, DRY_RUN, LOG_LEVEL
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, List, Tuple

from deploy_watcher.aws_clients import AWSClientManager
from deploy_watcher.control_plane import ControlPlane, DryRunControlPlane, ECSControlPlane
from deploy_watcher.errors import (
    ConfigurationError,
    DispatchError,
    FatalControlPlaneError,
    RetriesExhaustedError,
    ValidationError,
)
from deploy_watcher.events import parse_ecr_event
from deploy_watcher.schemas import DeploymentOutcome, DeploymentTarget, RetryPolicy
from deploy_watcher.settings import Settings, get_settings
from deploy_watcher.targets import load_targets, retry_policy_from_settings
from deploy_watcher.utils.decorators import log_execution_time
from deploy_watcher.watcher import dispatch_event

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Runtime:
    """Everything loaded once per Lambda container."""
    settings: Settings
    targets: Tuple[DeploymentTarget, ...]
    control_plane: ControlPlane
    retry_policy: RetryPolicy


def build_control_plane(settings: Settings) -> ControlPlane:
    if settings.dry_run:
        logger.info("🧪 Dry run enabled - ECS will not be called")
        return DryRunControlPlane()
    return ECSControlPlane(AWSClientManager(settings).get_client('ecs'))


@lru_cache()
def get_runtime() -> Runtime:
    settings = get_settings()
    return Runtime(
        settings=settings,
        targets=load_targets(settings),
        control_plane=build_control_plane(settings),
        retry_policy=retry_policy_from_settings(settings),
    )


def _response(status_code: int, **body: Any) -> Dict[str, Any]:
    body['timestamp'] = datetime.now(timezone.utc).isoformat()
    return {'statusCode': status_code, 'body': json.dumps(body, default=str)}


def _dump(outcomes: List[DeploymentOutcome]) -> List[Dict[str, Any]]:
    return [outcome.model_dump(mode='json') for outcome in outcomes]


@log_execution_time
def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Redeploy ECS services whose watched tag was just pushed.

    Transient failures that outlast the retry bound are re-raised so that
    Lambda's async retry / DLQ handling takes over; everything else is
    reported in the response body.
    """
    settings = get_settings()
    logging.getLogger().setLevel(settings.log_level)

    logger.info("=== Deploy Watcher Started ===")
    logger.info(f"Event: {json.dumps(event, default=str)}")

    try:
        runtime = get_runtime()
    except ConfigurationError as e:
        logger.error(f"❌ Configuration error: {e}")
        return _response(500, error=str(e), error_type='ConfigurationError')

    try:
        image_event = parse_ecr_event(event)
        if image_event is None:
            outcomes = [DeploymentOutcome.skipped("not a successful ECR image push")]
        else:
            outcomes = dispatch_event(
                image_event,
                runtime.targets,
                runtime.control_plane,
                retry_policy=runtime.retry_policy,
            )
    except ValidationError as e:
        logger.warning(f"⚠️ Discarding invalid event: {e}")
        return _response(400, error=str(e), error_type='ValidationError')
    except RetriesExhaustedError:
        raise
    except DispatchError as e:
        if any(isinstance(error, RetriesExhaustedError) for _, error in e.errors):
            raise
        logger.error(f"❌ {e}")
        return _response(
            500,
            error=str(e),
            error_type='DispatchError',
            outcomes=_dump(e.outcomes),
        )
    except FatalControlPlaneError as e:
        logger.error(f"❌ Redeploy failed: {e}")
        return _response(500, error=str(e), error_type=type(e).__name__, error_code=e.error_code)

    triggered = sum(1 for outcome in outcomes if outcome.is_triggered)
    logger.info(f"✅ Complete: {triggered} deployment(s) triggered, {len(outcomes) - triggered} skipped")
    return _response(200, triggered=triggered, outcomes=_dump(outcomes))
