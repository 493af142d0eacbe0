"""AWS utility functions and client management."""
import logging
from typing import Any, Optional

import boto3

from ecs_deploy.settings import Settings, get_settings

logger = logging.getLogger(__name__)


class AWSClientManager:
    """Singleton manager for AWS service clients."""
    _instance = None
    _clients = {}

    def __new__(cls, settings: Optional[Settings] = None):
        if cls._instance is None:
            cls._instance = super(AWSClientManager, cls).__new__(cls)
            cls._instance._initialize(settings or get_settings())
        return cls._instance

    def _initialize(self, settings: Settings):
        """Initialize the client manager with settings."""
        self.settings = settings

        # Cache commonly used values
        self.region = settings.aws_region
        self.endpoint_url = settings.aws_endpoint_url

        logger.debug("Initializing AWSClientManager")
        logger.debug(f"  Region: {self.region or '(default chain)'}")
        logger.debug(f"  Endpoint: {self.endpoint_url or '(default)'}")

    def configure(self, settings: Settings) -> None:
        """Switch to new settings, dropping clients built from the old ones."""
        self.clear_clients()
        self._initialize(settings)

    def get_client(self, service_name: str) -> Any:
        """Get or create an AWS service client."""
        # Return existing client if already created
        if service_name in self._clients:
            return self._clients[service_name]

        client_kwargs = {}
        if self.region:
            client_kwargs['region_name'] = self.region

        # Explicit credentials win; otherwise boto3's default chain applies
        if self.settings.aws_access_key_id:
            client_kwargs['aws_access_key_id'] = self.settings.aws_access_key_id
        if self.settings.aws_secret_access_key:
            client_kwargs['aws_secret_access_key'] = self.settings.aws_secret_access_key

        if self.endpoint_url:
            client_kwargs['endpoint_url'] = self.endpoint_url

        try:
            client = boto3.client(service_name, **client_kwargs)
            self._clients[service_name] = client
            logger.debug(f"Created {service_name} client")
            return client
        except Exception as e:
            logger.error(f"Error creating {service_name} client: {str(e)}")
            raise

    def clear_clients(self):
        """Clear all cached clients."""
        self._clients.clear()
        logger.debug("Cleared all AWS clients")


def get_ecs_client(settings: Optional[Settings] = None):
    """Get the ECS client, optionally reconfiguring the manager first."""
    manager = AWSClientManager(settings)
    if settings is not None and settings is not manager.settings:
        manager.configure(settings)
    return manager.get_client('ecs')
