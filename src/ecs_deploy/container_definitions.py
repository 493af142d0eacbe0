"""
Container Definition Mutator
Applies image and environment overrides to a task definition's containers.
"""
import copy
import logging
from collections.abc import Mapping, Sequence
from typing import Any, Dict, List, Tuple, Union

from ecs_deploy.exceptions import ContainerIndexError, InvalidShapeError
from ecs_deploy.models import EnvMergeStrategy

logger = logging.getLogger(__name__)

ImageOverrides = Union[Sequence, Mapping]


def is_sequence(value: Any) -> bool:
    """True for list-like values; strings, bytes and mappings do not count."""
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray))


def parse_env_vars(env_vars: Sequence) -> List[Tuple[str, str]]:
    """Split ``NAME=value`` strings on the first ``=``."""
    parsed = []
    for entry in env_vars:
        if not isinstance(entry, str) or '=' not in entry:
            raise InvalidShapeError(f"Environment override must be NAME=value, got {entry!r}")
        name, value = entry.split('=', 1)
        if not name:
            raise InvalidShapeError(f"Environment override has an empty name: {entry!r}")
        parsed.append((name, value))
    return parsed


def _image_assignments(images: ImageOverrides) -> Dict[int, str]:
    if isinstance(images, Mapping):
        return dict(images)
    return {index: image for index, image in enumerate(images)}


def _merge_environment(environment: List[Dict[str, Any]],
                       env_pairs: List[Tuple[str, str]],
                       strategy: EnvMergeStrategy) -> List[Dict[str, Any]]:
    if strategy is EnvMergeStrategy.REPLACE:
        overridden = {name for name, _ in env_pairs}
        merged = [entry for entry in environment if entry.get('name') not in overridden]
        latest = dict(env_pairs)
        for name in latest:
            merged.append({'name': name, 'value': latest[name]})
        return merged

    # Append: existing entries with the same name are kept
    merged = list(environment)
    for name, value in env_pairs:
        merged.append({'name': name, 'value': value})
    return merged


def mutate_container_definitions(container_definitions: Any,
                                 images: ImageOverrides,
                                 env_vars: Sequence = (),
                                 strategy: EnvMergeStrategy = EnvMergeStrategy.APPEND) -> List[Dict[str, Any]]:
    """Return a copy of ``container_definitions`` with the overrides applied.

    ``images`` is either an ordered list (``images[i]`` replaces the image of
    container ``i``) or an explicit ``{index: image}`` mapping. Every
    environment override is merged into each container that receives an image.
    Containers outside the override indexes are returned unchanged.

    All input is validated before anything is changed; the argument itself is
    never modified.

    Raises:
        InvalidShapeError: the containers are not a list, a targeted container
            is not a mapping, its environment is not a list, or an environment
            override is not ``NAME=value``.
        ContainerIndexError: an image override has no container at its index.
    """
    if not is_sequence(container_definitions):
        raise InvalidShapeError(
            f"containerDefinitions must be a list, got {type(container_definitions).__name__}"
        )

    assignments = _image_assignments(images)
    env_pairs = parse_env_vars(env_vars)

    for index in assignments:
        if not isinstance(index, int) or isinstance(index, bool):
            raise ContainerIndexError(index, len(container_definitions))

    for index in sorted(assignments):
        if index < 0 or index >= len(container_definitions):
            raise ContainerIndexError(index, len(container_definitions))
        container = container_definitions[index]
        if not isinstance(container, Mapping):
            raise InvalidShapeError(f"Container definition #{index} must be an object")
        if not is_sequence(container.get('environment', [])):
            raise InvalidShapeError(f"Container definition #{index} has a non-list environment")

    mutated = [copy.deepcopy(container) for container in container_definitions]
    for index in sorted(assignments):
        container = mutated[index]
        previous_image = container.get('image')
        container['image'] = assignments[index]
        logger.info(f"Container #{index} ({container.get('name', 'unnamed')}): "
                    f"{previous_image} -> {assignments[index]}")
        if env_pairs:
            container['environment'] = _merge_environment(
                list(container.get('environment') or []), env_pairs, strategy
            )

    return mutated
