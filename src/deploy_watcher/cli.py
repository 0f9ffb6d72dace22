# cli.py
import click
import json
import logging
from pathlib import Path

from deploy_watcher.control_plane import DryRunControlPlane, ECSControlPlane
from deploy_watcher.aws_clients import AWSClientManager
from deploy_watcher.errors import WatcherError
from deploy_watcher.events import parse_ecr_event
from deploy_watcher.schemas import DeploymentTarget, ImagePublishedEvent
from deploy_watcher.settings import get_settings
from deploy_watcher.targets import load_targets, retry_policy_from_settings
from deploy_watcher.watcher import dispatch_event, handle_image_published

logger = logging.getLogger(__name__)


def _control_plane(settings, dry_run: bool):
    if dry_run or settings.dry_run:
        return DryRunControlPlane()
    return ECSControlPlane(AWSClientManager(settings).get_client('ecs'))


def _echo_outcome(outcome):
    if outcome.is_triggered:
        click.echo(f"✅ Triggered {outcome.cluster_identifier}/{outcome.service_identifier} "
                   f"(deployment: {outcome.deployment_id or 'n/a'}, attempts: {outcome.attempts})")
    else:
        click.echo(f"⏭️ Skipped: {outcome.reason}")


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL")
def cli(log_level):
    """Redeploy ECS services when watched image tags are pushed"""
    settings = get_settings()
    logging.basicConfig(
        level=(log_level or settings.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@cli.command()
def show_config():
    """Show current configuration"""
    settings = get_settings()

    click.echo("Current Configuration:")
    click.echo(f"  Deployment Mode: {settings.deployment_mode}")
    click.echo(f"  AWS Region: {settings.aws_region}")
    click.echo(f"  AWS Endpoint: {settings.aws_endpoint_url}")
    click.echo(f"  Max Retries: {settings.max_retries}")
    click.echo(f"  Retry Delay: {settings.retry_base_delay}s (max {settings.retry_max_delay}s)")
    click.echo(f"  Request Timeout: {settings.request_timeout}s")
    click.echo(f"  Dry Run: {settings.dry_run}")


@cli.command()
def list_targets():
    """List the deployment targets the watcher would act on"""
    try:
        targets = load_targets(get_settings())
    except WatcherError as e:
        raise click.ClickException(str(e))

    for target in targets:
        scope = target.repository_identifier or "*"
        click.echo(f"{scope}:{target.expected_tag} -> {target.cluster_identifier}/{target.service_identifier}")


@cli.command()
@click.argument("event_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--dry-run", is_flag=True, help="Log the redeploy instead of calling ECS")
def handle_event(event_file, dry_run):
    """Handle an EventBridge (or plain) image event stored in EVENT_FILE"""
    settings = get_settings()

    try:
        raw = json.loads(event_file.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise click.ClickException(f"{event_file} is not valid JSON: {e}")

    try:
        targets = load_targets(settings)
        event = parse_ecr_event(raw)
        if event is None:
            click.echo("⏭️ Skipped: not a successful ECR image push")
            return
        outcomes = dispatch_event(
            event,
            targets,
            _control_plane(settings, dry_run),
            retry_policy=retry_policy_from_settings(settings),
        )
    except WatcherError as e:
        raise click.ClickException(str(e))

    for outcome in outcomes:
        _echo_outcome(outcome)


@cli.command()
@click.option("--cluster", required=True, help="ECS cluster name or ARN")
@click.option("--service", required=True, help="ECS service name or ARN")
@click.option("--repository", default="manual", show_default=True, help="Repository recorded in the logs")
@click.option("--tag", default=None, help="Image tag recorded in the logs (defaults to EXPECTED_IMAGE_TAG)")
@click.option("--dry-run", is_flag=True, help="Log the redeploy instead of calling ECS")
def deploy(cluster, service, repository, tag, dry_run):
    """Force a new deployment of one service right now"""
    settings = get_settings()
    tag = tag or settings.expected_image_tag

    target = DeploymentTarget(cluster_identifier=cluster, service_identifier=service, expected_tag=tag)
    event = ImagePublishedEvent(repository_identifier=repository, image_tag=tag)

    try:
        outcome = handle_image_published(
            event,
            target,
            _control_plane(settings, dry_run),
            retry_policy=retry_policy_from_settings(settings),
        )
    except WatcherError as e:
        raise click.ClickException(str(e))

    _echo_outcome(outcome)


if __name__ == "__main__":
    cli()
