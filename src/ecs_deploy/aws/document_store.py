"""Read-only access to task definitions and service events in ECS."""
import logging
from typing import List

from botocore.exceptions import ClientError

from ecs_deploy.aws.utils import get_ecs_client
from ecs_deploy.models import ServiceEvent, TaskDefinition

logger = logging.getLogger(__name__)

# Error code ECS returns when a family has no registered revision
TASK_DEFINITION_NOT_FOUND_CODES = ('ClientException', 'TaskDefinitionNotFoundException')


class TaskDefinitionStore:
    """Fetches the documents the deployment pipeline starts from."""

    def __init__(self, ecs_client=None):
        self.ecs_client = ecs_client or get_ecs_client()

    def fetch_task_definition(self, family: str) -> TaskDefinition:
        """Latest revision of ``family``, or an empty snapshot if none exists."""
        try:
            response = self.ecs_client.describe_task_definition(taskDefinition=family)
        except ClientError as e:
            code = e.response.get('Error', {}).get('Code')
            if code in TASK_DEFINITION_NOT_FOUND_CODES:
                logger.warning(f"No task definition found for family {family}; "
                               f"registering from explicit overrides only")
                return TaskDefinition.empty(family)
            logger.error(f"Failed to describe task definition {family}: {e}")
            raise

        task_definition = TaskDefinition.from_api(response['taskDefinition'])
        logger.info(f"Fetched task definition {family}:{task_definition.revision}")
        return task_definition

    def fetch_service_events(self, cluster: str, service: str) -> List[ServiceEvent]:
        """Events ECS currently reports for the service, in the order returned."""
        response = self.ecs_client.describe_services(cluster=cluster, services=[service])
        services = response.get('services', [])
        if not services:
            failures = response.get('failures', [])
            reason = failures[0].get('reason') if failures else 'not found'
            logger.warning(f"Service {service} in cluster {cluster} not described: {reason}")
            return []
        return [ServiceEvent.from_api(event) for event in services[0].get('events', [])]

