"""Changelog command implementation."""

import click


@click.command()
@click.option('--from', 'start', help='Tag or SHA to start the changelog from (defaults to the latest release)')
@click.option('--to', 'end', default='HEAD', help='Tag or SHA to end the changelog at')
@click.option('--dry-run', is_flag=True, help='Print the release notes without updating the changelog file')
@click.pass_context
def changelog(ctx, start, end, dry_run):
    """Prepend release notes for unreleased changes to the changelog file."""

    # Import here to avoid circular dependency
    from .main import run_command

    release_notes = run_command(ctx, lambda app: app.changelog(start=start, end=end, dry_run=dry_run))

    if dry_run:
        click.echo(release_notes or "No changes to add to the changelog")
        click.echo("(Dry run - no changes made)")
