import copy

import pytest

from ecs_deploy.container_definitions import mutate_container_definitions, parse_env_vars
from ecs_deploy.exceptions import ConfigurationError, ContainerIndexError, InvalidShapeError
from ecs_deploy.models import EnvMergeStrategy
from tests.consts import TEST_CONTAINER_DEFINITIONS


def test_single_image_and_env_override():
    containers = [{"image": "repo/app:v1", "environment": []}]

    mutated = mutate_container_definitions(containers, ["repo/app:v2"], ["FOO=bar"])

    assert mutated == [{"image": "repo/app:v2", "environment": [{"name": "FOO", "value": "bar"}]}]


def test_containers_outside_override_range_are_untouched():
    containers = copy.deepcopy(TEST_CONTAINER_DEFINITIONS)

    mutated = mutate_container_definitions(containers, ["repo/app:v2"], ["FOO=bar"])

    assert mutated[0]["image"] == "repo/app:v2"
    assert mutated[1] == TEST_CONTAINER_DEFINITIONS[1]


def test_input_is_not_modified():
    containers = copy.deepcopy(TEST_CONTAINER_DEFINITIONS)

    mutate_container_definitions(containers, ["repo/app:v2", "repo/sidecar:v2"], ["FOO=bar"])

    assert containers == TEST_CONTAINER_DEFINITIONS


def test_images_applied_by_position():
    mutated = mutate_container_definitions(
        TEST_CONTAINER_DEFINITIONS, ["repo/app:v3", "repo/sidecar:v3"]
    )

    assert [c["image"] for c in mutated] == ["repo/app:v3", "repo/sidecar:v3"]
    assert [c["name"] for c in mutated] == ["app", "sidecar"]
    # other fields survive verbatim
    assert mutated[0]["portMappings"] == TEST_CONTAINER_DEFINITIONS[0]["portMappings"]


def test_explicit_index_mapping():
    mutated = mutate_container_definitions(TEST_CONTAINER_DEFINITIONS, {1: "repo/sidecar:v9"})

    assert mutated[0] == TEST_CONTAINER_DEFINITIONS[0]
    assert mutated[1]["image"] == "repo/sidecar:v9"


def test_env_appended_once_per_override_per_container():
    env_vars = ["A=1", "B=2", "STAGE=prod"]

    mutated = mutate_container_definitions(
        TEST_CONTAINER_DEFINITIONS, ["repo/app:v2", "repo/sidecar:v2"], env_vars
    )

    for before, after in zip(TEST_CONTAINER_DEFINITIONS, mutated):
        assert len(after["environment"]) == len(before["environment"]) + len(env_vars)
        assert after["environment"][:len(before["environment"])] == before["environment"]


def test_append_keeps_duplicate_names():
    mutated = mutate_container_definitions(TEST_CONTAINER_DEFINITIONS, ["repo/app:v2"], ["STAGE=prod"])

    assert mutated[0]["environment"] == [
        {"name": "STAGE", "value": "test"},
        {"name": "STAGE", "value": "prod"},
    ]


def test_replace_strategy_is_last_write_wins():
    mutated = mutate_container_definitions(
        TEST_CONTAINER_DEFINITIONS,
        ["repo/app:v2"],
        ["STAGE=prod", "NEW=1", "STAGE=canary"],
        strategy=EnvMergeStrategy.REPLACE,
    )

    assert mutated[0]["environment"] == [
        {"name": "STAGE", "value": "canary"},
        {"name": "NEW", "value": "1"},
    ]


def test_env_created_when_container_has_none():
    mutated = mutate_container_definitions([{"name": "app", "image": "a:1"}], ["a:2"], ["K=V"])

    assert mutated[0]["environment"] == [{"name": "K", "value": "V"}]


def test_env_value_split_on_first_equals():
    assert parse_env_vars(["URL=postgres://u:p@h/db?sslmode=require", "EMPTY="]) == [
        ("URL", "postgres://u:p@h/db?sslmode=require"),
        ("EMPTY", ""),
    ]


@pytest.mark.parametrize("entry", ["NOVALUE", "=value", 42])
def test_malformed_env_override_rejected(entry):
    with pytest.raises(InvalidShapeError):
        mutate_container_definitions(TEST_CONTAINER_DEFINITIONS, ["repo/app:v2"], [entry])


def test_more_images_than_containers_is_configuration_error():
    containers = copy.deepcopy(TEST_CONTAINER_DEFINITIONS)

    with pytest.raises(ContainerIndexError) as exc_info:
        mutate_container_definitions(containers, ["a:1", "b:1", "c:1"], ["FOO=bar"])

    assert exc_info.value.index == 2
    assert exc_info.value.exit_code == 1
    assert containers == TEST_CONTAINER_DEFINITIONS


def test_no_containers_is_configuration_error():
    with pytest.raises(ContainerIndexError):
        mutate_container_definitions([], ["a:1"])


@pytest.mark.parametrize("document", [
    {"name": "app", "image": "repo/app:v1"},
    "repo/app:v1",
    None,
    42,
])
def test_non_sequence_rejected_before_mutation(document):
    with pytest.raises(InvalidShapeError) as exc_info:
        mutate_container_definitions(document, ["repo/app:v2"])

    assert isinstance(exc_info.value, ConfigurationError)


def test_non_mapping_container_rejected():
    with pytest.raises(InvalidShapeError):
        mutate_container_definitions(["repo/app:v1"], ["repo/app:v2"])


@pytest.mark.parametrize("images", [
    {0: "a:2", "1": "b:2"},
    {"first": "a:2"},
    {0: "a:2", 1.0: "b:2"},
])
def test_non_integer_override_keys_rejected(images):
    with pytest.raises(ContainerIndexError):
        mutate_container_definitions(TEST_CONTAINER_DEFINITIONS, images)
