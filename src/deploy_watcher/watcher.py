"""
Deployment Trigger Watcher

Bridges an image push notification to an ECS "force new deployment":
- Exact, case-sensitive match on the configured tag
- One UpdateService call per matching event, no deduplication
- Bounded exponential backoff for transient failures only
- Stateless between invocations, so any number of copies can run in parallel
"""
import logging
import threading
import time
from typing import Callable, Iterable, List, Optional, Tuple

from deploy_watcher.control_plane import ControlPlane
from deploy_watcher.errors import (
    DispatchError,
    FatalControlPlaneError,
    InvocationCancelledError,
    RetriesExhaustedError,
    TransientControlPlaneError,
    ValidationError,
    WatcherError,
)
from deploy_watcher.schemas import (
    DeploymentOutcome,
    DeploymentTarget,
    ImagePublishedEvent,
    RetryPolicy,
)

logger = logging.getLogger(__name__)

NO_MATCHING_TARGET = "no matching deployment target"


def validate_event(event: ImagePublishedEvent) -> None:
    missing = [name for name in ('repository_identifier', 'image_tag') if not getattr(event, name)]
    if missing:
        raise ValidationError(f"Image event is missing required field(s): {', '.join(missing)}")


def validate_target(target: DeploymentTarget) -> None:
    missing = [name for name in ('cluster_identifier', 'service_identifier') if not getattr(target, name)]
    if missing:
        raise ValidationError(f"Deployment target is missing required field(s): {', '.join(missing)}")


def handle_image_published(event: ImagePublishedEvent,
                           target: DeploymentTarget,
                           control_plane: ControlPlane,
                           retry_policy: Optional[RetryPolicy] = None,
                           sleep: Callable[[float], None] = time.sleep,
                           cancel_event: Optional[threading.Event] = None) -> DeploymentOutcome:
    """Redeploy ``target`` if ``event`` carries the tag it is waiting for.

    Args:
        event: Image push notification
        target: ECS service and the tag that should trigger it
        control_plane: Adapter issuing the UpdateService call
        retry_policy: Retry bound and backoff; defaults to 3 retries
        sleep: Used for backoff waits when no ``cancel_event`` is given
        cancel_event: Set by the caller to abandon pending retries

    Returns:
        Skipped outcome on tag/repository mismatch, Triggered otherwise

    Raises:
        ValidationError: missing event or target fields
        FatalControlPlaneError: non-retryable control plane failure
        RetriesExhaustedError: transient failures outlasted the retry bound
        InvocationCancelledError: cancelled while waiting to retry
    """
    validate_event(event)
    validate_target(target)

    if event.image_tag != target.expected_tag:
        logger.info(f"⏭️ Skipping {event.repository_identifier}:{event.image_tag} "
                    f"(waiting for '{target.expected_tag}' on {target.service_identifier})")
        return DeploymentOutcome.skipped(f"tag '{event.image_tag}' does not match '{target.expected_tag}'")

    if target.repository_identifier and event.repository_identifier != target.repository_identifier:
        logger.info(f"⏭️ Skipping {event.repository_identifier}:{event.image_tag} "
                    f"({target.service_identifier} follows {target.repository_identifier})")
        return DeploymentOutcome.skipped(
            f"repository '{event.repository_identifier}' does not match '{target.repository_identifier}'"
        )

    policy = retry_policy or RetryPolicy()
    cluster = target.cluster_identifier
    service = target.service_identifier

    attempt = 1
    while True:
        try:
            logger.info(f"🚀 Forcing new deployment of {cluster}/{service} "
                        f"for {event.repository_identifier}:{event.image_tag} "
                        f"(attempt {attempt}/{policy.max_attempts})")
            deployment_id = control_plane.update_service(cluster, service, force_new_deployment=True)
        except TransientControlPlaneError as e:
            if attempt >= policy.max_attempts:
                logger.error(f"❌ Giving up on {cluster}/{service} after {attempt} attempts: {e}")
                raise RetriesExhaustedError(attempt, e) from e

            delay = policy.delay_for(attempt)
            logger.warning(f"⚠️ Attempt {attempt}/{policy.max_attempts} for {cluster}/{service} "
                           f"failed: {e}. Retrying in {delay:.2f}s")
            _wait(delay, sleep, cancel_event)
            attempt += 1
            continue
        except FatalControlPlaneError as e:
            logger.error(f"❌ Redeploy of {cluster}/{service} failed: {e}")
            raise

        logger.info(f"✅ Triggered deployment {deployment_id or '(unknown id)'} for {cluster}/{service}")
        return DeploymentOutcome.triggered(target, deployment_id=deployment_id, attempts=attempt)


def _wait(delay: float, sleep: Callable[[float], None], cancel_event: Optional[threading.Event]) -> None:
    if cancel_event is None:
        sleep(delay)
        return
    if cancel_event.is_set() or cancel_event.wait(delay):
        raise InvocationCancelledError("Invocation cancelled while waiting to retry")


def matching_targets(event: ImagePublishedEvent,
                     targets: Iterable[DeploymentTarget]) -> List[DeploymentTarget]:
    return [target for target in targets if target.matches(event)]


def dispatch_event(event: ImagePublishedEvent,
                   targets: Iterable[DeploymentTarget],
                   control_plane: ControlPlane,
                   retry_policy: Optional[RetryPolicy] = None,
                   sleep: Callable[[float], None] = time.sleep,
                   cancel_event: Optional[threading.Event] = None) -> List[DeploymentOutcome]:
    """Handle one event against every configured target it matches.

    Each match is redeployed independently; a failing target does not stop
    the others. Failures are collected and raised together as DispatchError
    once every match has been attempted.
    """
    validate_event(event)

    matches = matching_targets(event, targets)
    if not matches:
        logger.debug(f"No deployment target for {event.repository_identifier}:{event.image_tag}")
        return [DeploymentOutcome.skipped(NO_MATCHING_TARGET)]

    if len(matches) > 1:
        logger.info(f"📦 {event.repository_identifier}:{event.image_tag} matches {len(matches)} targets")

    outcomes: List[DeploymentOutcome] = []
    errors: List[Tuple[DeploymentTarget, WatcherError]] = []
    for target in matches:
        try:
            outcomes.append(handle_image_published(
                event, target, control_plane,
                retry_policy=retry_policy, sleep=sleep, cancel_event=cancel_event,
            ))
        except InvocationCancelledError:
            raise
        except WatcherError as e:
            errors.append((target, e))

    if errors:
        if len(errors) == 1 and not outcomes:
            raise errors[0][1]
        raise DispatchError(outcomes, errors)
    return outcomes
