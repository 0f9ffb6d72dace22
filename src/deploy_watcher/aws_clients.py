"""AWS client management for the watcher."""
import os
import boto3
import logging
from typing import Any, Optional
from botocore.config import Config

from deploy_watcher.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class AWSClientManager:
    """Cache of boto3 clients configured from settings.

    One manager per settings object; the Lambda handler keeps a single
    instance alive across warm invocations.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.region = self.settings.aws_region
        self.endpoint_url = self.settings.aws_endpoint_url
        self.mode = self.settings.deployment_mode
        self._clients = {}

        logger.info(f"Initializing AWSClientManager")
        logger.info(f"  Mode: {self.mode}")
        logger.info(f"  Region: {self.region}")
        logger.info(f"  Endpoint: {self.endpoint_url}")

    def client_config(self) -> Config:
        """Per-call timeouts; botocore retries are off so the watcher owns retrying."""
        return Config(
            connect_timeout=self.settings.request_timeout,
            read_timeout=self.settings.request_timeout,
            retries={'total_max_attempts': 1, 'mode': 'standard'},
        )

    def get_client(self, service_name: str) -> Any:
        """Get or create an AWS service client."""
        if service_name in self._clients:
            return self._clients[service_name]

        client_kwargs = {
            'region_name': self.region,
            'config': self.client_config(),
        }

        # Named profile (SSO) for operators running the CLI against production
        aws_profile = os.environ.get('AWS_PROFILE')
        if aws_profile and self.mode == 'aws-prod':
            session = boto3.Session(profile_name=aws_profile)
            client = session.client(service_name, **client_kwargs)
            self._clients[service_name] = client
            logger.debug(f"Created {service_name} client using profile: {aws_profile}")
            return client

        if self.settings.aws_access_key_id:
            client_kwargs['aws_access_key_id'] = self.settings.aws_access_key_id
        if self.settings.aws_secret_access_key:
            client_kwargs['aws_secret_access_key'] = self.settings.aws_secret_access_key
        # Lambda execution roles hand out temporary STS keys
        if self.settings.aws_session_token:
            client_kwargs['aws_session_token'] = self.settings.aws_session_token

        # Endpoint override for moto server / local stacks
        if self.endpoint_url and self.mode in ['local-dev', 'aws-mock']:
            client_kwargs['endpoint_url'] = self.endpoint_url

        try:
            client = boto3.client(service_name, **client_kwargs)
        except Exception as e:
            logger.error(f"Error creating {service_name} client: {str(e)}")
            raise

        self._clients[service_name] = client
        logger.debug(f"Created {service_name} client")
        return client

