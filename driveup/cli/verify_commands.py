"""Verify command for the driveup CLI."""

import json
import sys

import click

from driveup.sdk import upload


@click.command('verify')
@click.argument('file_id')
@click.argument('local_path', type=click.Path(exists=True, dir_okay=False))
def verify_command(file_id, local_path):
    """Check that a Drive file matches a local file.

    FILE_ID: The Drive file ID to check
    LOCAL_PATH: The local file it should match
    """
    try:
        report = upload.verify_upload(file_id, local_path)
    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    click.echo(json.dumps(report, indent=2))
    if not report["match"]:
        click.secho("✗ Remote file does not match local file", fg="red", err=True)
        sys.exit(1)
    click.secho("✓ Remote file matches local file", fg="green", err=True)
