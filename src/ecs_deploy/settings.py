# src/ecs_deploy/settings.py
import json
import logging
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Dict, List, Optional

from pydantic import Field, validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from ecs_deploy.exceptions import ConfigurationError, InvalidShapeError
from ecs_deploy.models import EnvMergeStrategy, OverrideSet

logger = logging.getLogger(__name__)

# Inputs that used to configure the service itself and are no longer honoured
REJECTED_INPUTS = {
    'task_definition': "the full task definition can no longer be overridden; "
                       "use the image, env and scalar overrides instead",
    'service_definition': "the full service definition can no longer be overridden; "
                          "configure the service outside this tool",
}

TOLERATED_INPUTS = (
    'deployment_configuration',
    'desired_count',
    'load_balancer_name',
    'target_container_name',
    'target_container_port',
    'target_group_arn',
)


def _split_list(value: Any, separators: str) -> Any:
    """Accept a list, a JSON array string or a separated string."""
    if value is None or isinstance(value, (list, tuple)):
        return value
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return []
        if text.startswith('['):
            return json.loads(text)
        for separator in separators[1:]:
            text = text.replace(separator, separators[0])
        return [item.strip() for item in text.split(separators[0]) if item.strip()]
    return value


class Settings(BaseSettings):
    """
    Configuration for one deployment run.

    Configuration precedence:
    1. Explicit keyword arguments (the CLI passes its options this way)
    2. Environment variables (ECS_DEPLOY_ prefix, standard AWS names)
    3. .env file (if exists)
    4. Default values in this class (lowest priority)

    Usage:
        from ecs_deploy.settings import get_settings
        settings = get_settings()
        settings.validate_deployment_inputs()
        overrides = settings.build_override_set()
    """

    # Deployment target
    cluster: Optional[str] = Field(default=None, description="ECS cluster name or ARN")
    family: Optional[str] = Field(default=None, description="Task definition family")
    service: Optional[str] = Field(default=None, description="ECS service name")

    # AWS Core Settings
    aws_region: Optional[str] = Field(
        default=None,
        alias="AWS_DEFAULT_REGION"
    )

    aws_access_key_id: Optional[str] = Field(
        default=None,
        alias="AWS_ACCESS_KEY_ID"
    )

    aws_secret_access_key: Optional[str] = Field(
        default=None,
        alias="AWS_SECRET_ACCESS_KEY"
    )

    aws_endpoint_url: Optional[str] = Field(
        default=None,
        alias="AWS_ENDPOINT_URL"
    )

    # Overrides
    images: Annotated[List[str], NoDecode] = Field(
        default_factory=list,
        description="Images applied to container definitions in order"
    )

    env: Annotated[List[str], NoDecode] = Field(
        default_factory=list,
        description="NAME=value pairs appended to every overridden container"
    )

    env_merge_strategy: EnvMergeStrategy = Field(
        default=EnvMergeStrategy.APPEND,
        description="append keeps existing variables of the same name, replace drops them"
    )

    execution_role_arn: Optional[str] = None
    cpu: Optional[str] = None
    memory: Optional[str] = None
    ephemeral_storage_size_gib: Optional[int] = None
    ipc_mode: Optional[str] = None
    pid_mode: Optional[str] = None
    network_mode: Optional[str] = None
    task_role_arn: Optional[str] = None

    container_definitions: Optional[str] = Field(
        default=None,
        description="Inline JSON or file://path replacing the fetched container definitions"
    )

    # Waiter bound; the waiter's own defaults apply when unset
    wait_delay_seconds: Optional[int] = Field(default=None, ge=1)
    wait_max_attempts: Optional[int] = Field(default=None, ge=1)

    # Deprecated, rejected
    task_definition: Optional[str] = None
    service_definition: Optional[str] = None

    # Deprecated, ignored with a warning
    deployment_configuration: Optional[str] = None
    desired_count: Optional[int] = None
    load_balancer_name: Optional[str] = None
    target_container_name: Optional[str] = None
    target_container_port: Optional[int] = None
    target_group_arn: Optional[str] = None

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @validator('images', pre=True)
    def split_images(cls, v):
        """Images may be given one per line or comma separated."""
        return _split_list(v, '\n,')

    @validator('env', pre=True)
    def split_env(cls, v):
        """Environment pairs are given one per line; values may contain commas."""
        return _split_list(v, '\n')

    @validator('env_merge_strategy', pre=True)
    def normalize_merge_strategy(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @validator('log_level')
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log_level: {v}")
        return level

    def validate_deployment_inputs(self) -> None:
        """Reject unusable configuration before any AWS call is made."""
        for name, reason in REJECTED_INPUTS.items():
            if getattr(self, name):
                raise ConfigurationError(f"'{name}' is no longer supported: {reason}")

        missing = [name for name in ('cluster', 'family', 'service') if not getattr(self, name)]
        if missing:
            raise ConfigurationError(f"Missing required setting(s): {', '.join(missing)}")

        if not self.images:
            raise ConfigurationError("At least one image override is required")

        for name in TOLERATED_INPUTS:
            if getattr(self, name) not in (None, ''):
                logger.warning(f"'{name}' is deprecated and ignored; "
                               f"configure the service outside this tool")

    def build_override_set(self) -> OverrideSet:
        return OverrideSet(
            images=list(self.images),
            env_vars=list(self.env),
            execution_role_arn=self.execution_role_arn,
            cpu=self.cpu,
            ephemeral_storage_size_gib=self.ephemeral_storage_size_gib,
            ipc_mode=self.ipc_mode,
            memory=self.memory,
            network_mode=self.network_mode,
            pid_mode=self.pid_mode,
            task_role_arn=self.task_role_arn,
            env_merge_strategy=self.env_merge_strategy,
        )

    def load_container_definitions(self) -> Optional[Any]:
        """Parse the externally supplied container definitions, if any.

        The document is returned as parsed; its shape is checked by the mutator.
        """
        if not self.container_definitions:
            return None
        source = self.container_definitions.strip()
        if source.startswith('file://'):
            path = Path(source[len('file://'):])
            try:
                source = path.read_text(encoding='utf-8')
            except OSError as e:
                raise ConfigurationError(f"Cannot read container definitions from {path}: {e}")
        try:
            return json.loads(source)
        except json.JSONDecodeError as e:
            raise InvalidShapeError(f"Container definitions are not valid JSON: {e}")

    def describe(self) -> Dict[str, Any]:
        """Resolved configuration with credentials masked."""
        data = self.model_dump(by_alias=False)
        for key in ('aws_access_key_id', 'aws_secret_access_key'):
            if data.get(key):
                data[key] = '****'
        data['env_merge_strategy'] = self.env_merge_strategy.value
        return data

    model_config = SettingsConfigDict(
        env_prefix="ECS_DEPLOY_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()
