"""Upload commands for the driveup CLI."""

import json
import logging
import sys

import click

from driveup.sdk import upload
from driveup.sdk.exceptions import DriveUpError

logger = logging.getLogger(__name__)

# Exit codes: failed uploads exit 1, interrupted (resumable) uploads exit 2
EXIT_FAILED = 1
EXIT_INTERRUPTED = 2


def _finish(result: dict):
    """Print the result and exit with a status-specific code."""
    click.echo(json.dumps(result, indent=2))
    status = result["status"]
    if status == upload.SessionStatus.COMPLETED.value:
        return
    if status == upload.SessionStatus.INTERRUPTED.value:
        click.secho(f"Upload interrupted: {result['reason']}", fg="yellow", err=True)
        click.echo(f"Run 'driveup resume {result['local_path']}' to continue.", err=True)
        sys.exit(EXIT_INTERRUPTED)
    click.secho(f"Upload failed: {result['reason']}", fg="red", err=True)
    sys.exit(EXIT_FAILED)


def _parse_size(value):
    """Accept plain byte counts or K/M/G suffixed sizes (binary units)."""
    if value is None:
        return None
    units = {"K": 1024, "M": 1024 ** 2, "G": 1024 ** 3}
    text = value.strip().upper().rstrip("IB")
    try:
        if text and text[-1] in units:
            return int(float(text[:-1]) * units[text[-1]])
        return int(text)
    except ValueError:
        raise click.BadParameter(f"'{value}' is not a size (examples: 8388608, 8M, 256K)")


@click.command('upload')
@click.argument('local_path', type=click.Path(exists=True, dir_okay=False))
@click.option('--folder-id', default=None, help='Destination folder ID.')
@click.option('--name', default=None, help='Name for file in Drive.')
@click.option('--chunk-size', default=None,
              help='Chunk size for a new session, e.g. 8M. Must be a multiple of 256K.')
@click.option('--fresh', is_flag=True,
              help='Abandon any unfinished upload of this file and start over.')
def upload_command(local_path, folder_id, name, chunk_size, fresh):
    """Upload a file to Google Drive, resuming an unfinished upload if present."""
    try:
        result = upload.upload_file(
            local_path=local_path,
            folder_id=folder_id,
            name=name,
            chunk_size=_parse_size(chunk_size),
            fresh=fresh,
        )
    except DriveUpError as e:
        logger.error(f"Upload of {local_path} failed: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FAILED)
    except Exception as e:
        logger.critical(f"An unexpected error occurred during upload of {local_path}: {e}", exc_info=True)
        sys.exit(EXIT_FAILED)
    _finish(result)


@click.command('resume')
@click.argument('local_path', type=click.Path(exists=True, dir_okay=False))
def resume_command(local_path):
    """Continue an interrupted upload of LOCAL_PATH."""
    try:
        result = upload.resume_upload(local_path)
    except DriveUpError as e:
        logger.error(f"Resume of {local_path} failed: {e}")
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FAILED)
    except Exception as e:
        logger.critical(f"An unexpected error occurred during resume of {local_path}: {e}", exc_info=True)
        sys.exit(EXIT_FAILED)
    _finish(result)


@click.group()
def sessions():
    """Inspect and cancel unfinished uploads."""
    pass


@sessions.command('list')
def list_sessions():
    """List unfinished uploads that can be resumed."""
    records = upload.list_uploads()
    if not records:
        click.echo("No unfinished uploads.")
        return
    for record in records:
        total = record["total_size"]
        percent = 100 * record["confirmed_offset"] / total if total else 100
        click.echo(f"{record['source_path']}")
        click.echo(f"  {record['status']}: {record['confirmed_offset']}/{total} bytes ({percent:.1f}%)")
        if record.get("reason"):
            click.echo(f"  Reason: {record['reason']}")


@sessions.command('cancel')
@click.argument('local_path')
def cancel_session(local_path):
    """Abandon the unfinished upload of LOCAL_PATH."""
    try:
        result = upload.cancel_upload(local_path)
    except DriveUpError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_FAILED)
    click.echo(f"✓ Cancelled upload of {result['local_path']} "
               f"at {result['confirmed_offset']}/{result['total_size']} bytes")
