"""driveup CLI - resumable uploads to Google Drive."""

import logging
import os

import click
from dotenv import load_dotenv

from driveup import __version__

from .upload_commands import upload_command, resume_command, sessions as sessions_module
from .verify_commands import verify_command
from .auth_commands import auth_group as auth_module
from .config_commands import config_group as config_module


# Configure logging at the application level
if not logging.root.handlers:
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO),
                        format='%(asctime)s - %(levelname)s - %(message)s')
# Suppress noisy INFO logs from googleapiclient and google_auth_oauthlib
logging.getLogger('googleapiclient.discovery').setLevel(logging.WARNING)
logging.getLogger('googleapiclient.discovery_cache').setLevel(logging.WARNING)
logging.getLogger('google_auth_oauthlib.flow').setLevel(logging.WARNING)
logger = logging.getLogger(__name__)


@click.group()
@click.version_option(__version__, prog_name='driveup')
def driveup():
    """driveup CLI.

    Uploads large files to Google Drive in resumable chunks. Interrupted
    uploads continue from the last byte Drive confirmed.
    """
    pass


driveup.add_command(upload_command, name='upload')
driveup.add_command(resume_command, name='resume')
driveup.add_command(sessions_module, name='sessions')
driveup.add_command(verify_command, name='verify')
driveup.add_command(auth_module, name='auth')
driveup.add_command(config_module, name='config')


def main():
    """Entry point for the CLI."""
    load_dotenv()
    driveup()


if __name__ == "__main__":
    main()
