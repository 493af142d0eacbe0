"""
Data model for a single deployment run.

TaskDefinition and ServiceEvent are snapshots of what ECS reported; the other
types are built and discarded within one invocation.
"""
import copy
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from ecs_deploy.exceptions import ConfigurationError

# Attribute name -> ECS API key for the scalar task definition fields
SCALAR_FIELDS: Dict[str, str] = {
    'execution_role_arn': 'executionRoleArn',
    'cpu': 'cpu',
    'ephemeral_storage_size_gib': 'ephemeralStorageSizeGiB',
    'ipc_mode': 'ipcMode',
    'memory': 'memory',
    'network_mode': 'networkMode',
    'pid_mode': 'pidMode',
    'task_role_arn': 'taskRoleArn',
}

# Attribute name -> ECS API key for the fields forwarded without inspection
OPAQUE_FIELDS: Dict[str, str] = {
    'volumes': 'volumes',
    'placement_constraints': 'placementConstraints',
    'requires_compatibilities': 'requiresCompatibilities',
}


def is_empty(value: Any) -> bool:
    """True for None, empty strings and empty collections."""
    if value is None:
        return True
    if isinstance(value, (str, list, tuple, dict)):
        return len(value) == 0
    return False


def to_sortable_timestamp(value: Any) -> str:
    """Render a timestamp as fixed-width ISO-8601 UTC text.

    Strings in this form compare lexicographically in chronological order.
    Naive datetimes are taken to be UTC.
    """
    if isinstance(value, str):
        text = value.strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            value = datetime.fromisoformat(text)
        except ValueError:
            raise ConfigurationError(f"Invalid timestamp: {value!r}")
    if not isinstance(value, datetime):
        raise ConfigurationError(f"Invalid timestamp: {value!r}")
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec='microseconds')


@dataclass(frozen=True)
class OpaqueDocument:
    """A structured value read from ECS and forwarded without inspection."""
    value: Any

    @property
    def is_empty(self) -> bool:
        return is_empty(self.value)

    def render(self) -> Any:
        return copy.deepcopy(self.value)


@dataclass
class TaskDefinition:
    """Snapshot of the latest registered revision of a family.

    ``exists`` is False when the family has never been registered; every
    other field is then empty.
    """
    family: str
    exists: bool = True
    container_definitions: Optional[List[Dict[str, Any]]] = None
    execution_role_arn: Optional[str] = None
    cpu: Optional[str] = None
    ephemeral_storage_size_gib: Optional[int] = None
    ipc_mode: Optional[str] = None
    memory: Optional[str] = None
    network_mode: Optional[str] = None
    pid_mode: Optional[str] = None
    task_role_arn: Optional[str] = None
    volumes: Optional[OpaqueDocument] = None
    placement_constraints: Optional[OpaqueDocument] = None
    requires_compatibilities: Optional[OpaqueDocument] = None
    revision: Optional[int] = None

    @classmethod
    def empty(cls, family: str) -> 'TaskDefinition':
        return cls(family=family, exists=False)

    @classmethod
    def from_api(cls, document: Dict[str, Any]) -> 'TaskDefinition':
        """Build a snapshot from a describe-task-definition ``taskDefinition``."""
        ephemeral_storage = document.get('ephemeralStorage') or {}
        return cls(
            family=document['family'],
            container_definitions=document.get('containerDefinitions'),
            execution_role_arn=document.get('executionRoleArn'),
            cpu=document.get('cpu'),
            ephemeral_storage_size_gib=ephemeral_storage.get('sizeInGiB'),
            ipc_mode=document.get('ipcMode'),
            memory=document.get('memory'),
            network_mode=document.get('networkMode'),
            pid_mode=document.get('pidMode'),
            task_role_arn=document.get('taskRoleArn'),
            volumes=_opaque(document, 'volumes'),
            placement_constraints=_opaque(document, 'placementConstraints'),
            requires_compatibilities=_opaque(document, 'requiresCompatibilities'),
            revision=document.get('revision'),
        )


def _opaque(document: Dict[str, Any], key: str) -> Optional[OpaqueDocument]:
    if key not in document:
        return None
    return OpaqueDocument(document[key])


class EnvMergeStrategy(Enum):
    """How environment overrides combine with a container's environment."""
    APPEND = "append"
    REPLACE = "replace"


@dataclass
class OverrideSet:
    """Caller-supplied changes for one deployment."""
    images: List[str]
    env_vars: List[str] = field(default_factory=list)
    execution_role_arn: Optional[str] = None
    cpu: Optional[str] = None
    ephemeral_storage_size_gib: Optional[int] = None
    ipc_mode: Optional[str] = None
    memory: Optional[str] = None
    network_mode: Optional[str] = None
    pid_mode: Optional[str] = None
    task_role_arn: Optional[str] = None
    env_merge_strategy: EnvMergeStrategy = EnvMergeStrategy.APPEND

    def __post_init__(self):
        if not self.images:
            raise ConfigurationError("At least one image override is required")

    def image_assignments(self) -> Dict[int, str]:
        """Map container definition index -> new image."""
        return {index: image for index, image in enumerate(self.images)}

    def scalar_overrides(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in SCALAR_FIELDS}


@dataclass
class RegistrationRequest:
    """Arguments for register-task-definition, keyed by ECS API name."""
    family: str
    container_definitions: List[Dict[str, Any]]
    fields: Dict[str, Any] = field(default_factory=dict)

    def to_api_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            'family': self.family,
            'containerDefinitions': self.container_definitions,
        }
        for key, value in self.fields.items():
            if key == 'ephemeralStorageSizeGiB':
                kwargs['ephemeralStorage'] = {'sizeInGiB': int(value)}
            else:
                kwargs[key] = value
        return kwargs


@dataclass(frozen=True)
class Revision:
    """A registered task definition revision."""
    family: str
    number: int
    arn: Optional[str] = None

    @property
    def identifier(self) -> str:
        return f"{self.family}:{self.number}"


@dataclass(frozen=True)
class DeploymentWindow:
    """Lower bound (inclusive) for the events that belong to a deployment."""
    since: str

    @classmethod
    def open(cls) -> 'DeploymentWindow':
        return cls(since=to_sortable_timestamp(datetime.now(timezone.utc)))


@dataclass(frozen=True)
class ServiceEvent:
    id: str
    created_at: str
    message: str

    @classmethod
    def from_api(cls, event: Dict[str, Any]) -> 'ServiceEvent':
        return cls(
            id=event.get('id', ''),
            created_at=to_sortable_timestamp(event['createdAt']),
            message=event.get('message', ''),
        )

    def format(self) -> str:
        return f"{self.created_at} {self.message}"


@dataclass
class DeploymentResult:
    """Outcome of one pipeline run."""
    request: Optional[RegistrationRequest] = None
    revision: Optional[Revision] = None
    window: Optional[DeploymentWindow] = None
    stable: bool = False
    events: List[ServiceEvent] = field(default_factory=list)
    exit_code: int = 0
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0
