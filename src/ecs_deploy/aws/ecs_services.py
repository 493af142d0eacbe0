"""ECS service rollout: point a service at a revision and wait for it to settle."""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from botocore.exceptions import ClientError, WaiterError

from ecs_deploy.aws.utils import get_ecs_client
from ecs_deploy.exceptions import ServiceUpdateError, StabilizationFailure
from ecs_deploy.models import DeploymentWindow, Revision

logger = logging.getLogger(__name__)


class DeploymentState(Enum):
    """Driver states in order."""
    IDLE = "idle"
    UPDATING = "updating"
    WAITING = "waiting"
    STABLE = "stable"
    UNSTABLE = "unstable"


@dataclass
class DeploymentOutcome:
    """What the driver observed; the window is set once the update was attempted."""
    state: DeploymentState
    window: Optional[DeploymentWindow] = None
    exit_code: int = 0
    error_message: Optional[str] = None

    @property
    def stable(self) -> bool:
        return self.state is DeploymentState.STABLE


class ServicesStableWaiter:
    """Blocks on ECS's ``services_stable`` waiter.

    Polling interval and attempt budget belong to the waiter; ``delay`` and
    ``max_attempts`` are forwarded only when given.
    """

    def __init__(self, ecs_client=None, delay: Optional[int] = None,
                 max_attempts: Optional[int] = None):
        self.ecs_client = ecs_client or get_ecs_client()
        self.delay = delay
        self.max_attempts = max_attempts

    def waiter_config(self) -> Dict[str, Any]:
        config = {}
        if self.delay:
            config['Delay'] = self.delay
        if self.max_attempts:
            config['MaxAttempts'] = self.max_attempts
        return config

    def wait(self, cluster: str, service: str) -> None:
        """Return once the service is stable.

        Raises:
            StabilizationFailure: the waiter hit a failure state or ran out
                of attempts.
        """
        waiter = self.ecs_client.get_waiter('services_stable')
        kwargs = {'cluster': cluster, 'services': [service]}
        config = self.waiter_config()
        if config:
            kwargs['WaiterConfig'] = config
        try:
            waiter.wait(**kwargs)
        except WaiterError as e:
            raise StabilizationFailure(f"Service {service} did not stabilize: {e}") from e


class ECSServiceManager:
    """Drives one rollout: update, then wait.

    Exactly one update call and at most one wait call are made per
    ``deploy``; nothing is retried.
    """

    def __init__(self, ecs_client=None, waiter=None):
        self.ecs_client = ecs_client or get_ecs_client()
        self.waiter = waiter or ServicesStableWaiter(self.ecs_client)
        self.state = DeploymentState.IDLE

    def update_service(self, cluster: str, service: str, revision: Revision) -> Dict[str, Any]:
        """Point the service at ``revision``; returns without waiting."""
        try:
            response = self.ecs_client.update_service(
                cluster=cluster,
                service=service,
                taskDefinition=revision.identifier,
            )
        except ClientError as e:
            logger.error(f"Failed to update service {service} in {cluster}: {e}")
            raise ServiceUpdateError(str(e)) from e

        logger.info(f"Updated service {service} to {revision.identifier}")
        return response.get('service', {})

    def deploy(self, cluster: str, service: str, revision: Revision) -> DeploymentOutcome:
        """Update ``service`` to ``revision`` and wait for it to stabilize.

        Failures are captured in the outcome rather than raised so the caller
        can still collect the service's events for the deployment window.
        """
        window = DeploymentWindow.open()

        self.state = DeploymentState.UPDATING
        try:
            self.update_service(cluster, service, revision)
        except ServiceUpdateError as e:
            self.state = DeploymentState.UNSTABLE
            return DeploymentOutcome(self.state, window, e.exit_code, str(e))

        self.state = DeploymentState.WAITING
        logger.info(f"Waiting for service {service} to become stable...")
        try:
            self.waiter.wait(cluster, service)
        except StabilizationFailure as e:
            self.state = DeploymentState.UNSTABLE
            logger.error(str(e))
            return DeploymentOutcome(self.state, window, e.exit_code, str(e))

        self.state = DeploymentState.STABLE
        logger.info(f"Service {service} is stable on {revision.identifier}")
        return DeploymentOutcome(self.state, window)
