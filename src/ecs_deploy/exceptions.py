"""Errors raised by the deployment pipeline.

Every error carries the process exit status the command line reports for it.
"""
from typing import Optional

# Exit statuses the AWS CLI reports for the same failures
EXIT_CONFIGURATION = 1
EXIT_PARAM_VALIDATION = 252
EXIT_CLIENT_ERROR = 254
EXIT_WAITER_FAILURE = 255


class DeploymentError(Exception):
    """Base class for all pipeline failures."""

    exit_code: int = 1

    def __init__(self, message: str, exit_code: Optional[int] = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class ConfigurationError(DeploymentError):
    """Invalid input detected before any AWS call is made."""

    exit_code = EXIT_CONFIGURATION


class InvalidShapeError(ConfigurationError):
    """A document does not have the structure the pipeline requires."""


class ContainerIndexError(ConfigurationError):
    """An image override points past the end of the container definitions."""

    def __init__(self, index: int, container_count: int):
        super().__init__(
            f"Image override #{index} has no matching container definition "
            f"(task definition has {container_count} container(s))"
        )
        self.index = index
        self.container_count = container_count


class RegistrationError(DeploymentError):
    """ECS rejected the register-task-definition request."""

    exit_code = EXIT_CLIENT_ERROR


class ServiceUpdateError(DeploymentError):
    """ECS rejected the update-service request."""

    exit_code = EXIT_CLIENT_ERROR


class StabilizationFailure(DeploymentError):
    """The service did not become stable within the waiter's bound."""

    exit_code = EXIT_WAITER_FAILURE
