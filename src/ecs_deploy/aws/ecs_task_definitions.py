"""
ECS Task Definition Builder
Assembles registration requests from a fetched task definition plus overrides
and registers them as new revisions.
"""
import logging
from typing import Any, Dict, List

from botocore.exceptions import ClientError, ParamValidationError

from ecs_deploy.aws.utils import get_ecs_client
from ecs_deploy.exceptions import (
    EXIT_CLIENT_ERROR,
    EXIT_PARAM_VALIDATION,
    RegistrationError,
)
from ecs_deploy.models import (
    OPAQUE_FIELDS,
    SCALAR_FIELDS,
    OverrideSet,
    RegistrationRequest,
    Revision,
    TaskDefinition,
    is_empty,
)

logger = logging.getLogger(__name__)


def assemble_registration_request(fetched: TaskDefinition,
                                  container_definitions: List[Dict[str, Any]],
                                  overrides: OverrideSet) -> RegistrationRequest:
    """Build the register-task-definition request.

    Each scalar field takes the override when set, else the fetched value,
    else it is left out. Volumes, placement constraints and compatibilities
    are copied from the fetched definition when non-empty and never overridden.
    """
    fields: Dict[str, Any] = {}

    for name, api_key in SCALAR_FIELDS.items():
        override = getattr(overrides, name)
        inherited = getattr(fetched, name)
        if not is_empty(override):
            fields[api_key] = override
        elif not is_empty(inherited):
            fields[api_key] = inherited

    for name, api_key in OPAQUE_FIELDS.items():
        document = getattr(fetched, name)
        if document is not None and not document.is_empty:
            fields[api_key] = document.render()

    return RegistrationRequest(
        family=fetched.family,
        container_definitions=container_definitions,
        fields=fields,
    )


class TaskDefinitionBuilder:
    """Builds and registers ECS task definition revisions."""

    def __init__(self, ecs_client=None):
        self.ecs_client = ecs_client or get_ecs_client()

    def build_registration_request(self, fetched: TaskDefinition,
                                   container_definitions: List[Dict[str, Any]],
                                   overrides: OverrideSet) -> RegistrationRequest:
        request = assemble_registration_request(fetched, container_definitions, overrides)
        inherited = sorted(key for key in request.fields
                           if key not in _explicit_keys(overrides))
        logger.debug(f"Registration request for {request.family} inherits: {', '.join(inherited) or 'nothing'}")
        return request

    def register_task_definition(self, request: RegistrationRequest) -> Revision:
        """Register the request with ECS and return the new revision.

        Raises:
            RegistrationError: ECS or botocore rejected the request. The exit
                code follows the AWS CLI: 252 for parameter validation
                failures, 254 for service errors.
        """
        try:
            response = self.ecs_client.register_task_definition(**request.to_api_kwargs())
        except ParamValidationError as e:
            logger.error(f"Invalid register-task-definition request for {request.family}: {e}")
            raise RegistrationError(str(e), exit_code=EXIT_PARAM_VALIDATION) from e
        except ClientError as e:
            logger.error(f"Failed to register task definition {request.family}: {e}")
            raise RegistrationError(str(e), exit_code=EXIT_CLIENT_ERROR) from e

        task_definition = response['taskDefinition']
        revision = Revision(
            family=task_definition['family'],
            number=task_definition['revision'],
            arn=task_definition.get('taskDefinitionArn'),
        )

        logger.info(f"Registered task definition: {revision.identifier}")
        logger.info(f"Task definition ARN: {revision.arn}")

        return revision


def _explicit_keys(overrides: OverrideSet) -> List[str]:
    return [SCALAR_FIELDS[name] for name, value in overrides.scalar_overrides().items()
            if not is_empty(value)]


def create_task_definition_builder(ecs_client=None) -> TaskDefinitionBuilder:
    """Factory function to create a TaskDefinitionBuilder."""
    return TaskDefinitionBuilder(ecs_client)
