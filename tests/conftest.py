import copy
import os

import boto3
import pytest
from moto import mock_aws

from ecs_deploy.aws.utils import AWSClientManager
from ecs_deploy.settings import Settings, get_settings
from tests.consts import (
    TEST_CLUSTER,
    TEST_CONTAINER_DEFINITIONS,
    TEST_EXECUTION_ROLE_ARN,
    TEST_FAMILY,
    TEST_REGION,
    TEST_SERVICE,
)


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Isolate every test from the caller's AWS and ECS_DEPLOY_ settings."""
    for key in list(os.environ):
        if key.startswith("ECS_DEPLOY_"):
            monkeypatch.delenv(key)
    monkeypatch.delenv("AWS_ENDPOINT_URL", raising=False)
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", TEST_REGION)

    get_settings.cache_clear()
    AWSClientManager._instance = None
    AWSClientManager._clients.clear()
    yield
    get_settings.cache_clear()
    AWSClientManager._instance = None
    AWSClientManager._clients.clear()


@pytest.fixture
def mocked_aws():
    with mock_aws():
        yield


@pytest.fixture
def ecs_client(mocked_aws):
    return boto3.client("ecs", region_name=TEST_REGION)


@pytest.fixture
def registered_task_definition(ecs_client):
    response = ecs_client.register_task_definition(
        family=TEST_FAMILY,
        containerDefinitions=copy.deepcopy(TEST_CONTAINER_DEFINITIONS),
        executionRoleArn=TEST_EXECUTION_ROLE_ARN,
        networkMode="awsvpc",
        requiresCompatibilities=["FARGATE"],
        cpu="256",
        memory="1024",
    )
    return response["taskDefinition"]


@pytest.fixture
def running_service(ecs_client, registered_task_definition):
    ecs_client.create_cluster(clusterName=TEST_CLUSTER)
    response = ecs_client.create_service(
        cluster=TEST_CLUSTER,
        serviceName=TEST_SERVICE,
        taskDefinition=f"{TEST_FAMILY}:{registered_task_definition['revision']}",
        desiredCount=1,
    )
    return response["service"]


@pytest.fixture
def settings():
    return Settings(
        cluster=TEST_CLUSTER,
        family=TEST_FAMILY,
        service=TEST_SERVICE,
        aws_region=TEST_REGION,
        images=["repo/app:v2"],
        env=["FOO=bar"],
    )
