# cli.py
import json
import logging
import sys

import click
from botocore.exceptions import ClientError
from pydantic import ValidationError

from ecs_deploy.aws.deploy_ecs import ECSDeployment
from ecs_deploy.aws.document_store import TaskDefinitionStore
from ecs_deploy.aws.utils import get_ecs_client
from ecs_deploy.events import correlate
from ecs_deploy.exceptions import EXIT_CLIENT_ERROR, EXIT_CONFIGURATION, DeploymentError
from ecs_deploy.models import DeploymentResult, EnvMergeStrategy
from ecs_deploy.settings import Settings

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def load_settings(**options) -> Settings:
    """Settings from the environment, overlaid with the options that were given."""
    given = {key: value for key, value in options.items() if value not in (None, ())}
    try:
        settings = Settings(**given)
    except ValidationError as e:
        click.echo(f"Error: invalid configuration\n{e}", err=True)
        sys.exit(EXIT_CONFIGURATION)
    configure_logging(settings.log_level)
    return settings


def print_events(result: DeploymentResult) -> None:
    if result.window is None:
        return
    click.echo(f"Service events since {result.window.since}:")
    if not result.events:
        click.echo("  (none)")
    for event in result.events:
        click.echo(f"  {event.format()}")


@click.group()
def cli():
    """Rolling deployments of ECS services"""
    pass


@cli.command()
@click.option("--cluster", help="ECS cluster name or ARN")
@click.option("--family", help="Task definition family")
@click.option("--service", help="ECS service name")
@click.option("--region", "aws_region", help="AWS region")
@click.option("--image", "images", multiple=True,
              help="Image for the next container definition, in order (repeatable)")
@click.option("--env", multiple=True, help="NAME=value added to every overridden container (repeatable)")
@click.option("--env-merge-strategy",
              type=click.Choice([strategy.value for strategy in EnvMergeStrategy]),
              help="append keeps existing variables of the same name, replace drops them")
@click.option("--execution-role-arn")
@click.option("--task-role-arn")
@click.option("--cpu")
@click.option("--memory")
@click.option("--ephemeral-storage", "ephemeral_storage_size_gib", type=int, help="Ephemeral storage in GiB")
@click.option("--ipc-mode")
@click.option("--pid-mode")
@click.option("--network-mode")
@click.option("--container-definitions",
              help="JSON or file://path replacing the fetched container definitions")
@click.option("--wait-delay", "wait_delay_seconds", type=int, help="Seconds between stability checks")
@click.option("--wait-max-attempts", type=int, help="Stability checks before giving up")
@click.option("--task-definition", hidden=True)
@click.option("--service-definition", hidden=True)
@click.option("--deployment-configuration", hidden=True)
@click.option("--desired-count", type=int, hidden=True)
@click.option("--load-balancer-name", hidden=True)
@click.option("--target-container-name", hidden=True)
@click.option("--target-container-port", type=int, hidden=True)
@click.option("--target-group-arn", hidden=True)
@click.option("--log-level", help="Logging level")
@click.option("--dry-run", is_flag=True, help="Print the registration request without registering")
def deploy(dry_run, **options):
    """Register a new task definition revision and roll the service onto it"""
    settings = load_settings(**options)

    try:
        result = ECSDeployment(settings).run(dry_run=dry_run)
    except DeploymentError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(e.exit_code)

    if dry_run:
        click.echo(json.dumps(result.request.to_api_kwargs(), indent=2, default=str))
        return

    click.echo(f"Task definition: {result.revision.identifier}")
    print_events(result)

    if not result.succeeded:
        click.echo(f"Error: {result.error_message}", err=True)
        sys.exit(result.exit_code)
    click.echo(f"Service {settings.service} is stable on {result.revision.identifier}")


@cli.command()
@click.option("--cluster", help="ECS cluster name or ARN")
@click.option("--service", help="ECS service name")
@click.option("--region", "aws_region", help="AWS region")
@click.option("--since", required=True, help="ISO-8601 timestamp; earlier events are skipped")
def events(since, **options):
    """Show service events recorded since a point in time"""
    settings = load_settings(**options)
    if not settings.cluster or not settings.service:
        click.echo("Error: cluster and service are required", err=True)
        sys.exit(EXIT_CONFIGURATION)

    try:
        store = TaskDefinitionStore(get_ecs_client(settings))
        selected = correlate(store, settings.cluster, settings.service, since)
    except DeploymentError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(e.exit_code)
    except ClientError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_CLIENT_ERROR)

    for event in selected:
        click.echo(event.format())


@cli.command()
def show_config():
    """Show current configuration"""
    settings = load_settings()

    click.echo("Current Configuration:")
    for key, value in settings.describe().items():
        if value not in (None, [], ''):
            click.echo(f"  {key}: {value}")


if __name__ == "__main__":
    cli()
