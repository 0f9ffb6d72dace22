import json

import pytest

from deploy_watcher.errors import ConfigurationError
from deploy_watcher.settings import Settings
from deploy_watcher.targets import load_targets, retry_policy_from_settings
from tests.consts import TEST_CLUSTER, TEST_REPOSITORY, TEST_SERVICE, TEST_TAG


def make_settings(**overrides):
    return Settings(_env_file=None, **overrides)


def test_single_target_from_environment(watcher_env):
    targets = load_targets(make_settings())

    assert len(targets) == 1
    assert targets[0].cluster_identifier == TEST_CLUSTER
    assert targets[0].service_identifier == TEST_SERVICE
    assert targets[0].expected_tag == TEST_TAG
    assert targets[0].repository_identifier is None


def test_single_target_repository_scope(watcher_env, monkeypatch):
    monkeypatch.setenv("ECR_REPOSITORY_NAME", TEST_REPOSITORY)

    targets = load_targets(make_settings())

    assert targets[0].repository_identifier == TEST_REPOSITORY


def test_inline_json_targets():
    settings = make_settings(deploy_targets=json.dumps([
        {"cluster": "prod", "service": "api", "tag": "release"},
        {"clusterIdentifier": "prod", "serviceIdentifier": "worker", "expectedTag": "release", "repository": "worker"},
    ]))

    targets = load_targets(settings)

    assert [t.service_identifier for t in targets] == ["api", "worker"]
    assert targets[1].repository_identifier == "worker"


def test_targets_file_wins_over_inline(tmp_path):
    path = tmp_path / "targets.json"
    path.write_text(json.dumps({"cluster": "staging", "service": "api", "tag": "main"}))
    settings = make_settings(deploy_targets_file=str(path), deploy_targets="[]")

    targets = load_targets(settings)

    assert len(targets) == 1
    assert targets[0].cluster_identifier == "staging"


def test_nothing_configured_raises():
    with pytest.raises(ConfigurationError):
        load_targets(make_settings())


@pytest.mark.parametrize("raw", [
    "not json",
    "[]",
    json.dumps([{"cluster": "prod", "service": "api"}]),
    json.dumps([{"cluster": "", "service": "api", "tag": "release"}]),
])
def test_invalid_inline_targets_raise(raw):
    with pytest.raises(ConfigurationError):
        load_targets(make_settings(deploy_targets=raw))


def test_missing_targets_file_raises(tmp_path):
    with pytest.raises(ConfigurationError):
        load_targets(make_settings(deploy_targets_file=str(tmp_path / "missing.json")))


def test_retry_policy_from_settings():
    policy = retry_policy_from_settings(make_settings(max_retries=5, retry_base_delay=0.1, retry_max_delay=2))

    assert policy.max_retries == 5
    assert policy.max_attempts == 6
    assert policy.delay_for(1) == 0.1
    assert policy.delay_for(10) == 2


def test_settings_defaults():
    settings = make_settings()

    assert settings.max_retries == 3
    assert settings.request_timeout == 10.0
    assert settings.expected_image_tag == "latest"
    assert settings.dry_run is False


def test_legacy_deployment_mode_is_normalized():
    settings = make_settings(deployment_mode="local-mock")

    assert settings.deployment_mode == "local-dev"
    assert settings.aws_endpoint_url == "http://localhost:5000"


def test_invalid_deployment_mode_is_rejected():
    with pytest.raises(ValueError):
        make_settings(deployment_mode="staging")
