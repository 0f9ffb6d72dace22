"""Translate EventBridge ECR notifications into ImagePublishedEvent."""
import logging
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from deploy_watcher.errors import ValidationError
from deploy_watcher.schemas import ImagePublishedEvent

logger = logging.getLogger(__name__)

ECR_SOURCE = "aws.ecr"
ECR_DETAIL_TYPE = "ECR Image Action"


def is_eventbridge_envelope(raw: Dict[str, Any]) -> bool:
    return "detail" in raw and "source" in raw


def parse_ecr_event(raw: Dict[str, Any]) -> Optional[ImagePublishedEvent]:
    """Parse an EventBridge envelope or a plain event dict.

    Example EventBridge payload:
        {
            "source": "aws.ecr",
            "detail-type": "ECR Image Action",
            "time": "2024-05-01T12:00:00Z",
            "detail": {
                "action-type": "PUSH",
                "result": "SUCCESS",
                "repository-name": "app",
                "image-tag": "release",
                "image-digest": "sha256:..."
            }
        }

    Returns:
        The parsed event, or None for notifications that are not successful pushes
    """
    if not isinstance(raw, dict):
        raise ValidationError(f"Image event must be a JSON object, got {type(raw).__name__}")

    if not is_eventbridge_envelope(raw):
        try:
            return ImagePublishedEvent.model_validate(raw)
        except PydanticValidationError as e:
            raise ValidationError(f"Malformed image event: {e}") from e

    source = raw.get("source")
    detail_type = raw.get("detail-type")
    if source != ECR_SOURCE or detail_type != ECR_DETAIL_TYPE:
        logger.info(f"Ignoring {source}/{detail_type} notification")
        return None

    detail = raw.get("detail") or {}
    if not isinstance(detail, dict):
        raise ValidationError("ECR event detail must be a JSON object")
    action = detail.get("action-type")
    result = detail.get("result")
    if action != "PUSH" or result != "SUCCESS":
        logger.info(f"Ignoring ECR {action} with result {result}")
        return None

    fields = {
        "repository_identifier": detail.get("repository-name") or "",
        "image_tag": detail.get("image-tag") or "",
        "digest": detail.get("image-digest") or "",
    }
    if raw.get("time"):
        fields["pushed_at"] = raw["time"]

    try:
        return ImagePublishedEvent.model_validate(fields)
    except PydanticValidationError as e:
        if [error["loc"] for error in e.errors()] != [("pushed_at",)]:
            raise ValidationError(f"Malformed ECR event: {e}") from e
    # pushed_at is informational; keep the push
    logger.warning(f"Unparseable event time {fields.pop('pushed_at')!r}, using receive time")
    return ImagePublishedEvent.model_validate(fields)
