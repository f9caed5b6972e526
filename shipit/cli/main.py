"""Main CLI entry point for shipit."""

import asyncio
import logging
import sys
from typing import Any, Awaitable, Callable, TypeVar

import click

from .. import __version__
from ..config import create_sample_config
from ..errors import ConfigurationError, ShipitError
from ..orchestrator import Shipit
from .changelog import changelog
from .release import release
from .ship import canary, next_release, shipit


T = TypeVar("T")


@click.group()
@click.option('--debug', is_flag=True, help='Enable debug logging')
@click.option('--gitlab-host', help='GitLab host URL')
@click.option('--gitlab-token', help='GitLab API token')
@click.option('--project', '-p', help='GitLab project path or ID')
@click.option('--config-file', '-c', help='Path to JSON configuration file')
@click.version_option(version=__version__, prog_name="shipit")
@click.pass_context
def cli(ctx, debug, gitlab_host, gitlab_token, project, config_file):
    """Shipit - label-driven semantic release automation for GitLab."""

    # Setup logging
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Store global options in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj['config_file'] = config_file
    ctx.obj['overrides'] = {
        'gitlab_host': gitlab_host,
        'gitlab_token': gitlab_token,
        'project': project,
    }
    ctx.obj['logger'] = logging.getLogger('shipit')


def create_shipit(ctx) -> Shipit:
    """Create the orchestrator from the global options."""
    return Shipit(
        config_file=ctx.obj['config_file'],
        logger=ctx.obj['logger'],
        **ctx.obj['overrides'],
    )


def run_command(ctx, operation: Callable[[Shipit], Awaitable[T]]) -> T:
    """Load configuration and run ``operation`` on a fresh event loop.

    Exits with status 1 on any shipit error.
    """
    async def _run() -> T:
        app = create_shipit(ctx)
        config = await app.load_config()

        # Validate required settings
        if not config.gitlab_token:
            raise ConfigurationError("GitLab token is required. Set SHIPIT_GITLAB_TOKEN, use --gitlab-token, or config file")
        if not config.project:
            raise ConfigurationError("Project is required. Set SHIPIT_PROJECT, use --project, or config file")

        return await operation(app)

    try:
        return asyncio.run(_run())
    except ShipitError as e:
        ctx.obj['logger'].debug("Command failed", exc_info=True)
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option('--path', '-p', default='.shipitrc', help='Path for the config file')
def init_config(path):
    """Create a sample configuration file."""
    try:
        create_sample_config(path)
    except OSError as e:
        click.echo(f"Error creating config file: {e}", err=True)
        sys.exit(1)
    click.echo(f"Sample configuration written to {path}")


@cli.command()
@click.option('--dry-run', is_flag=True, help='Show what would be done without making changes')
@click.pass_context
def create_labels(ctx, dry_run):
    """Create or update the configured labels on the project."""
    names = run_command(ctx, lambda app: app.create_labels(dry_run=dry_run))
    if not names:
        click.echo("No labels to create")


@cli.command()
@click.option('--from', 'start', help='Tag or SHA to start at (defaults to the latest release)')
@click.pass_context
def version(ctx, start):
    """Print the version bump the unreleased changes call for."""
    bump = run_command(ctx, lambda app: app.version(start))
    click.echo(str(bump))


# Add subcommands
cli.add_command(changelog)
cli.add_command(release)
cli.add_command(shipit)
cli.add_command(next_release)
cli.add_command(canary)


def main():
    """Main entry point for console script."""
    cli()


if __name__ == '__main__':
    main()
