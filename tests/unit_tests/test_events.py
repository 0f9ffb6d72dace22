from datetime import datetime, timezone

import pytest

from deploy_watcher.errors import ValidationError
from deploy_watcher.events import parse_ecr_event
from tests.consts import TEST_DIGEST, TEST_REPOSITORY, TEST_TAG


def test_successful_push_is_parsed(ecr_push_event):
    event = parse_ecr_event(ecr_push_event)

    assert event.repository_identifier == TEST_REPOSITORY
    assert event.image_tag == TEST_TAG
    assert event.digest == TEST_DIGEST
    assert event.pushed_at == datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("key, value", [
    ("action-type", "DELETE"),
    ("result", "FAILURE"),
])
def test_non_push_actions_are_ignored(ecr_push_event, key, value):
    ecr_push_event["detail"][key] = value

    assert parse_ecr_event(ecr_push_event) is None


def test_other_sources_are_ignored(ecr_push_event):
    ecr_push_event["source"] = "aws.s3"

    assert parse_ecr_event(ecr_push_event) is None


def test_untagged_push_yields_empty_tag(ecr_push_event):
    del ecr_push_event["detail"]["image-tag"]

    assert parse_ecr_event(ecr_push_event).image_tag == ""


def test_plain_event_accepts_camel_case():
    event = parse_ecr_event({
        "repositoryIdentifier": TEST_REPOSITORY,
        "imageTag": TEST_TAG,
        "pushedAt": "2024-05-01T12:00:00+00:00",
        "digest": TEST_DIGEST,
    })

    assert event.repository_identifier == TEST_REPOSITORY
    assert event.image_tag == TEST_TAG


def test_malformed_plain_event_is_a_validation_error():
    with pytest.raises(ValidationError):
        parse_ecr_event({"repository_identifier": TEST_REPOSITORY, "image_tag": TEST_TAG, "pushed_at": "yesterday"})


def test_bad_envelope_time_keeps_the_push(ecr_push_event):
    ecr_push_event["time"] = "not-a-time"
    before = datetime.now(timezone.utc)

    event = parse_ecr_event(ecr_push_event)

    assert event.image_tag == TEST_TAG
    assert event.pushed_at >= before


@pytest.mark.parametrize("raw", [5, None, "release", [1, 2]])
def test_non_object_payload_is_a_validation_error(raw):
    with pytest.raises(ValidationError):
        parse_ecr_event(raw)


def test_non_object_detail_is_a_validation_error(ecr_push_event):
    ecr_push_event["detail"] = "PUSH"

    with pytest.raises(ValidationError):
        parse_ecr_event(ecr_push_event)


def test_non_string_repository_is_a_validation_error(ecr_push_event):
    ecr_push_event["detail"]["repository-name"] = {"name": "app"}

    with pytest.raises(ValidationError):
        parse_ecr_event(ecr_push_event)
