"""Commands that version, tag and publish in one go."""

import click


def _report(result, dry_run):
    if dry_run:
        click.echo("(Dry run - no changes made)")
    elif result is None:
        click.echo("No version published")
    else:
        click.echo(f"Published {result.new_version}")


@click.command()
@click.option('--dry-run', is_flag=True, help='Show what would be done without making changes')
@click.pass_context
def shipit(ctx, dry_run):
    """Release whatever the current branch calls for: full release, prerelease or canary."""
    from .main import run_command

    result = run_command(ctx, lambda app: app.shipit(dry_run=dry_run))
    _report(result, dry_run)


@click.command(name='next')
@click.option('--dry-run', is_flag=True, help='Show what would be done without making changes')
@click.pass_context
def next_release(ctx, dry_run):
    """Publish a prerelease."""
    from .main import run_command

    result = run_command(ctx, lambda app: app.next(dry_run=dry_run))
    _report(result, dry_run)


@click.command()
@click.option('--pr', type=int, help='Merge request IID (defaults to CI_MERGE_REQUEST_IID)')
@click.option('--build', type=int, help='Build number (defaults to CI_PIPELINE_IID)')
@click.option('--dry-run', is_flag=True, help='Show what would be done without making changes')
@click.pass_context
def canary(ctx, pr, build, dry_run):
    """Publish a canary version for a merge request or commit."""
    from .main import run_command

    result = run_command(ctx, lambda app: app.canary(pr=pr, build=build, dry_run=dry_run))
    _report(result, dry_run)
