"""Release command implementation."""

import click


@click.command()
@click.option('--from', 'start', help='Tag or SHA to start the release notes from (defaults to the latest release)')
@click.option('--use-version', help='Version to publish instead of the current one')
@click.option('--prerelease', is_flag=True, help='Publish as a prerelease')
@click.option('--dry-run', is_flag=True, help='Show what would be done without making changes')
@click.pass_context
def release(ctx, start, use_version, prerelease, dry_run):
    """Publish a GitLab release for the current version."""

    # Import here to avoid circular dependency
    from .main import run_command

    context = run_command(ctx, lambda app: app.run_release(
        start=start,
        use_version=use_version,
        prerelease=prerelease,
        dry_run=dry_run,
    ))

    if dry_run:
        click.echo("(Dry run - no changes made)")
    elif context is None:
        click.echo("Nothing released")
    else:
        click.echo(f"Successfully created release {context.new_version}")
