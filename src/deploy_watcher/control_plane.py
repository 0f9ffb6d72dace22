"""Orchestration control plane adapters."""
import logging
from typing import Any, Dict, List, Optional, Protocol, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from deploy_watcher.errors import classify_client_error

logger = logging.getLogger(__name__)


class ControlPlane(Protocol):
    """The single mutating call the watcher issues."""

    def update_service(self, cluster_identifier: str, service_identifier: str,
                       force_new_deployment: bool = True) -> Optional[str]:
        ...


class ECSControlPlane:
    """Force new deployments through the ECS UpdateService API."""

    def __init__(self, ecs_client: Any):
        self.ecs_client = ecs_client

    def update_service(self, cluster_identifier: str, service_identifier: str,
                       force_new_deployment: bool = True) -> Optional[str]:
        """Ask ECS to replace the service's tasks with fresh ones.

        Returns:
            ID of the new primary deployment, if ECS reported one

        Raises:
            TransientControlPlaneError: throttling, 5xx or network failures
            FatalControlPlaneError: anything that a retry will not fix
        """
        try:
            response = self.ecs_client.update_service(
                cluster=cluster_identifier,
                service=service_identifier,
                forceNewDeployment=force_new_deployment,
            )
        except (ClientError, BotoCoreError) as e:
            raise classify_client_error(e, cluster_identifier, service_identifier) from e

        return primary_deployment_id(response.get('service', {}))


class DryRunControlPlane:
    """Records redeploys without touching ECS."""

    def __init__(self):
        self.calls: List[Tuple[str, str, bool]] = []

    def update_service(self, cluster_identifier: str, service_identifier: str,
                       force_new_deployment: bool = True) -> Optional[str]:
        logger.info(f"🧪 [dry-run] would update {cluster_identifier}/{service_identifier} "
                    f"(forceNewDeployment={force_new_deployment})")
        self.calls.append((cluster_identifier, service_identifier, force_new_deployment))
        return None


def primary_deployment_id(service: Dict[str, Any]) -> Optional[str]:
    """Pick the PRIMARY deployment out of a DescribeServices/UpdateService payload."""
    for deployment in service.get('deployments', []):
        if deployment.get('status') == 'PRIMARY':
            return deployment.get('id')
    return None
