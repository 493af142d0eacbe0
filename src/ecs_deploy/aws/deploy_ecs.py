"""Rolling deployment of an ECS service to a new task definition revision."""
import functools
import logging
import time
from typing import Any, List, Optional

from botocore.exceptions import ClientError

from ecs_deploy.aws.document_store import TaskDefinitionStore
from ecs_deploy.aws.ecs_services import ECSServiceManager, ServicesStableWaiter
from ecs_deploy.aws.ecs_task_definitions import create_task_definition_builder
from ecs_deploy.aws.utils import get_ecs_client
from ecs_deploy.container_definitions import is_sequence, mutate_container_definitions
from ecs_deploy.events import correlate
from ecs_deploy.exceptions import InvalidShapeError
from ecs_deploy.models import DeploymentResult, DeploymentWindow, ServiceEvent, TaskDefinition
from ecs_deploy.settings import Settings

logger = logging.getLogger(__name__)


def log_operation(description: str):
    """Decorator for timing and logging deployment stages."""
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger.info(f"Starting: {description}")
            start_time = time.time()
            try:
                result = func(*args, **kwargs)
                duration = time.time() - start_time
                logger.info(f"Completed: {description} in {duration:.2f}s")
                return result
            except Exception as e:
                duration = time.time() - start_time
                logger.error(f"Failed: {description} after {duration:.2f}s - {str(e)}")
                raise
        return wrapper
    return decorator


class ECSDeployment:
    """One deployment run: fetch, mutate, assemble, register, roll out, report.

    Collaborators default to boto3-backed implementations and may be
    replaced, e.g. with fakes in tests.
    """

    def __init__(self, settings: Settings, store=None, builder=None,
                 service_manager=None, ecs_client=None):
        self.settings = settings
        if ecs_client is None and None in (store, builder, service_manager):
            ecs_client = get_ecs_client(settings)
        self.store = store or TaskDefinitionStore(ecs_client)
        self.builder = builder or create_task_definition_builder(ecs_client)
        self.service_manager = service_manager or ECSServiceManager(
            ecs_client,
            waiter=ServicesStableWaiter(
                ecs_client,
                delay=settings.wait_delay_seconds,
                max_attempts=settings.wait_max_attempts,
            ),
        )

    def _external_container_definitions(self) -> Optional[Any]:
        document = self.settings.load_container_definitions()
        if document is not None and not is_sequence(document):
            raise InvalidShapeError(
                f"Container definitions document must be a list, got {type(document).__name__}"
            )
        return document

    @log_operation("Fetch current task definition")
    def fetch(self) -> TaskDefinition:
        return self.store.fetch_task_definition(self.settings.family)

    @log_operation("Apply container overrides")
    def mutate(self, fetched: TaskDefinition, external: Optional[Any], overrides) -> List[dict]:
        if external is not None:
            source = external
            logger.info("Using externally supplied container definitions")
        elif fetched.container_definitions is not None:
            source = fetched.container_definitions
        else:
            source = []
        return mutate_container_definitions(
            source, overrides.image_assignments(), overrides.env_vars,
            overrides.env_merge_strategy,
        )

    @log_operation("Register task definition")
    def register(self, request):
        return self.builder.register_task_definition(request)

    @log_operation("Roll out service")
    def roll_out(self, revision):
        return self.service_manager.deploy(self.settings.cluster, self.settings.service, revision)

    def collect_events(self, window: DeploymentWindow) -> List[ServiceEvent]:
        """Events for the window; a failed lookup is logged and yields none."""
        try:
            return correlate(self.store, self.settings.cluster, self.settings.service, window)
        except ClientError as e:
            logger.error(f"Failed to describe service events: {e}")
            return []

    def run(self, dry_run: bool = False) -> DeploymentResult:
        """Run the pipeline.

        Configuration and registration errors are raised; nothing is
        registered or updated after them. Once a revision exists, update and
        stabilization failures are reported in the result together with the
        events recorded since the update was issued.
        """
        self.settings.validate_deployment_inputs()
        overrides = self.settings.build_override_set()
        external = self._external_container_definitions()

        fetched = self.fetch()
        container_definitions = self.mutate(fetched, external, overrides)
        request = self.builder.build_registration_request(fetched, container_definitions, overrides)

        if dry_run:
            logger.info("Dry run: registration request assembled, nothing registered")
            return DeploymentResult(request=request)

        revision = self.register(request)
        outcome = self.roll_out(revision)
        events = self.collect_events(outcome.window)

        result = DeploymentResult(
            request=request,
            revision=revision,
            window=outcome.window,
            stable=outcome.stable,
            events=events,
            exit_code=outcome.exit_code,
            error_message=outcome.error_message,
        )
        if result.succeeded:
            logger.info(f"Deployment of {revision.identifier} to {self.settings.service} succeeded")
        else:
            logger.error(f"Deployment of {revision.identifier} to {self.settings.service} failed "
                         f"(exit code {result.exit_code})")
        return result


def run_deployment(settings: Settings, dry_run: bool = False, **collaborators) -> DeploymentResult:
    """Convenience wrapper around ``ECSDeployment(settings).run()``."""
    return ECSDeployment(settings, **collaborators).run(dry_run=dry_run)
