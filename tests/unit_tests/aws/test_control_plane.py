import boto3
import pytest
from botocore.stub import Stubber

from deploy_watcher.aws_clients import AWSClientManager
from deploy_watcher.control_plane import DryRunControlPlane, ECSControlPlane, primary_deployment_id
from deploy_watcher.errors import FatalControlPlaneError, TransientControlPlaneError
from deploy_watcher.settings import Settings
from tests.consts import TEST_CLUSTER, TEST_REGION, TEST_SERVICE


def test_update_service_forces_new_deployment(ecs_service):
    control_plane = ECSControlPlane(ecs_service)

    control_plane.update_service(TEST_CLUSTER, TEST_SERVICE)

    service = ecs_service.describe_services(cluster=TEST_CLUSTER, services=[TEST_SERVICE])["services"][0]
    assert service["serviceName"] == TEST_SERVICE
    assert service["status"] == "ACTIVE"


def test_unknown_service_is_fatal(ecs_service):
    control_plane = ECSControlPlane(ecs_service)

    with pytest.raises(FatalControlPlaneError) as exc_info:
        control_plane.update_service(TEST_CLUSTER, "does-not-exist")

    assert exc_info.value.error_code == "ServiceNotFoundException"
    assert exc_info.value.service_identifier == "does-not-exist"


def test_unknown_cluster_is_fatal(ecs_client):
    control_plane = ECSControlPlane(ecs_client)

    with pytest.raises(FatalControlPlaneError) as exc_info:
        control_plane.update_service("missing-cluster", TEST_SERVICE)

    assert exc_info.value.error_code == "ClusterNotFoundException"


def test_throttling_is_transient(aws_credentials):
    client = boto3.client("ecs", region_name=TEST_REGION)

    with Stubber(client) as stubber:
        stubber.add_client_error(
            "update_service",
            service_error_code="ThrottlingException",
            service_message="Rate exceeded",
            http_status_code=400,
            expected_params={"cluster": TEST_CLUSTER, "service": TEST_SERVICE, "forceNewDeployment": True},
        )
        with pytest.raises(TransientControlPlaneError) as exc_info:
            ECSControlPlane(client).update_service(TEST_CLUSTER, TEST_SERVICE)

    assert exc_info.value.error_code == "ThrottlingException"


def test_primary_deployment_id_is_returned(aws_credentials):
    client = boto3.client("ecs", region_name=TEST_REGION)
    response = {
        "service": {
            "serviceName": TEST_SERVICE,
            "deployments": [
                {"id": "ecs-svc/old", "status": "ACTIVE"},
                {"id": "ecs-svc/new", "status": "PRIMARY"},
            ],
        }
    }

    with Stubber(client) as stubber:
        stubber.add_response("update_service", response)
        deployment_id = ECSControlPlane(client).update_service(TEST_CLUSTER, TEST_SERVICE)

    assert deployment_id == "ecs-svc/new"


def test_primary_deployment_id_missing():
    assert primary_deployment_id({}) is None
    assert primary_deployment_id({"deployments": [{"id": "ecs-svc/1", "status": "ACTIVE"}]}) is None


def test_dry_run_records_calls():
    control_plane = DryRunControlPlane()

    assert control_plane.update_service(TEST_CLUSTER, TEST_SERVICE) is None
    assert control_plane.calls == [(TEST_CLUSTER, TEST_SERVICE, True)]


def test_client_manager_applies_timeouts_and_disables_botocore_retries(aws_credentials):
    settings = Settings(_env_file=None, request_timeout=3.5)
    manager = AWSClientManager(settings)

    client = manager.get_client("ecs")

    assert client.meta.config.connect_timeout == 3.5
    assert client.meta.config.read_timeout == 3.5
    assert client.meta.config.retries["total_max_attempts"] == 1
    assert manager.get_client("ecs") is client


def test_client_manager_uses_endpoint_in_mock_mode(aws_credentials):
    settings = Settings(_env_file=None, deployment_mode="aws-mock")

    client = AWSClientManager(settings).get_client("ecs")

    assert client.meta.endpoint_url == "http://localhost:5000"


def test_client_manager_signs_with_session_token(aws_credentials, monkeypatch):
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "ASIATEMPORARY")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "temporary-secret")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "the-session-token")

    client = AWSClientManager(Settings(_env_file=None)).get_client("ecs")

    credentials = client._request_signer._credentials
    assert credentials.access_key == "ASIATEMPORARY"
    assert credentials.token == "the-session-token"
