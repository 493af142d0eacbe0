import boto3
import pytest
from botocore.stub import Stubber

from ecs_deploy.aws.ecs_services import (
    DeploymentState,
    ECSServiceManager,
    ServicesStableWaiter,
)
from ecs_deploy.exceptions import ServiceUpdateError, StabilizationFailure
from ecs_deploy.models import Revision
from tests.consts import TEST_CLUSTER, TEST_FAMILY, TEST_REGION, TEST_SERVICE


class FakeWaiter:
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def wait(self, cluster, service):
        self.calls.append((cluster, service))
        if self.fail:
            raise StabilizationFailure("Max attempts exceeded")


def test_deploy_updates_service_and_waits(ecs_client, running_service, registered_task_definition):
    new_definition = ecs_client.register_task_definition(
        family=TEST_FAMILY,
        containerDefinitions=[{"name": "app", "image": "repo/app:v2", "memory": 512}],
    )["taskDefinition"]
    revision = Revision(family=TEST_FAMILY, number=new_definition["revision"])
    waiter = FakeWaiter()
    manager = ECSServiceManager(ecs_client, waiter=waiter)

    outcome = manager.deploy(TEST_CLUSTER, TEST_SERVICE, revision)

    assert outcome.stable
    assert outcome.exit_code == 0
    assert outcome.window is not None
    assert manager.state is DeploymentState.STABLE
    assert waiter.calls == [(TEST_CLUSTER, TEST_SERVICE)]

    service = ecs_client.describe_services(cluster=TEST_CLUSTER, services=[TEST_SERVICE])["services"][0]
    assert service["taskDefinition"].split("/")[-1] == revision.identifier


def test_wait_failure_is_reported_not_raised(ecs_client, running_service, registered_task_definition):
    revision = Revision(family=TEST_FAMILY, number=registered_task_definition["revision"])
    manager = ECSServiceManager(ecs_client, waiter=FakeWaiter(fail=True))

    outcome = manager.deploy(TEST_CLUSTER, TEST_SERVICE, revision)

    assert not outcome.stable
    assert outcome.state is DeploymentState.UNSTABLE
    assert outcome.exit_code == 255
    assert "Max attempts exceeded" in outcome.error_message
    assert outcome.window is not None


def test_update_failure_skips_wait():
    client = boto3.client("ecs", region_name=TEST_REGION)
    waiter = FakeWaiter()
    manager = ECSServiceManager(client, waiter=waiter)

    with Stubber(client) as stubber:
        stubber.add_client_error("update_service", service_error_code="ServiceNotActiveException")
        outcome = manager.deploy(TEST_CLUSTER, TEST_SERVICE, Revision(TEST_FAMILY, 2))

    assert outcome.state is DeploymentState.UNSTABLE
    assert outcome.exit_code == 254
    assert waiter.calls == []


def test_update_service_raises_on_client_error():
    client = boto3.client("ecs", region_name=TEST_REGION)
    manager = ECSServiceManager(client, waiter=FakeWaiter())

    with Stubber(client) as stubber:
        stubber.add_client_error("update_service", service_error_code="ServiceNotFoundException")
        with pytest.raises(ServiceUpdateError):
            manager.update_service(TEST_CLUSTER, TEST_SERVICE, Revision(TEST_FAMILY, 2))


def test_services_stable_waiter_success():
    client = boto3.client("ecs", region_name=TEST_REGION)
    waiter = ServicesStableWaiter(client, delay=1, max_attempts=1)
    stable = {
        "services": [{
            "serviceName": TEST_SERVICE,
            "desiredCount": 1,
            "runningCount": 1,
            "deployments": [{"id": "ecs-svc/1", "status": "PRIMARY"}],
        }],
        "failures": [],
    }

    with Stubber(client) as stubber:
        stubber.add_response("describe_services", stable)
        waiter.wait(TEST_CLUSTER, TEST_SERVICE)
        stubber.assert_no_pending_responses()


def test_services_stable_waiter_failure():
    client = boto3.client("ecs", region_name=TEST_REGION)
    waiter = ServicesStableWaiter(client, delay=1, max_attempts=1)
    missing = {"services": [], "failures": [{"arn": TEST_SERVICE, "reason": "MISSING"}]}

    with Stubber(client) as stubber:
        stubber.add_response("describe_services", missing)
        with pytest.raises(StabilizationFailure) as exc_info:
            waiter.wait(TEST_CLUSTER, TEST_SERVICE)

    assert exc_info.value.exit_code == 255


def test_waiter_config_only_forwards_given_values():
    client = boto3.client("ecs", region_name=TEST_REGION)

    assert ServicesStableWaiter(client).waiter_config() == {}
    assert ServicesStableWaiter(client, delay=5, max_attempts=3).waiter_config() == {
        "Delay": 5, "MaxAttempts": 3
    }
