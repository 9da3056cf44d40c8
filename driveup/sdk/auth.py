"""Authentication and credential management for the driveup SDK.

Provides functions to load Google API credentials based on the configured
auth mode, and the refresh collaborator the upload engine calls before
every remote operation.
"""

import os
import logging
from typing import Tuple, Optional, Any, List

from .config import get_config_value, get_default_token_path
from .exceptions import CredentialsError

logger = logging.getLogger(__name__)

# drive.file limits access to files created or opened by this app
DRIVE_SCOPES = [
    "https://www.googleapis.com/auth/drive.file",
]

AUTH_MODES = ("token", "adc")


def get_token_path() -> str:
    """Resolve the token file path from config, falling back to the default."""
    configured = get_config_value("auth.token_file")
    if configured:
        return os.path.expanduser(str(configured))
    return str(get_default_token_path())


def get_credentials(
    token_file: Optional[str] = None,
    use_adc: Optional[bool] = None,
) -> Tuple[Any, str]:
    """
    Load credentials based on config or explicit arguments.

    Args:
        token_file: Explicit OAuth user token file (overrides config)
        use_adc: Force (True) or forbid (False) Application Default Credentials.
                 None means follow the configured auth.mode.

    Returns:
        Tuple of (credentials object, source description)

    Raises:
        CredentialsError: If the token file is missing or ADC is unavailable
    """
    import google.auth
    from google.auth.exceptions import DefaultCredentialsError
    from google.oauth2.credentials import Credentials

    if use_adc is None:
        use_adc = token_file is None and get_config_value("auth.mode") == "adc"

    if use_adc:
        try:
            creds, project = google.auth.default(scopes=DRIVE_SCOPES)
        except DefaultCredentialsError as e:
            raise CredentialsError(f"Application Default Credentials not available: {e}") from e
        source = "Application Default Credentials"
        if project:
            source += f" (project: {project})"
        return creds, source

    token_path = token_file or get_token_path()
    if not os.path.exists(token_path):
        raise CredentialsError(
            f"Token file not found: {token_path}. Run 'driveup auth login' first."
        )
    try:
        creds = Credentials.from_authorized_user_file(token_path, DRIVE_SCOPES)
    except ValueError as e:
        raise CredentialsError(f"Token file {token_path} is not a valid user token: {e}") from e
    return creds, f"Token file: {token_path}"


def refresh_credentials(creds) -> bool:
    """
    Refresh credentials if needed.

    Args:
        creds: Google credentials object

    Returns:
        True if refresh succeeded or not needed

    Raises:
        CredentialsError if refresh is impossible or fails
    """
    from google.auth.exceptions import RefreshError
    from google.auth.transport.requests import Request
    from google.oauth2.credentials import Credentials

    if creds.valid:
        return True
    # ADC and service account credentials refresh without a refresh token
    if isinstance(creds, Credentials) and not creds.refresh_token:
        raise CredentialsError("Credentials expired and no refresh token available")
    try:
        creds.refresh(Request())
    except RefreshError as e:
        raise CredentialsError(f"Failed to refresh credentials: {e}") from e
    logger.debug("Google API credentials refreshed.")
    return True


class CredentialsRefresher:
    """Keeps a credentials object usable across a long upload.

    The engine calls ensure_valid() before each remote operation, so an
    access token that expires halfway through a multi-hour upload is
    refreshed at the next chunk boundary instead of failing the send.
    """

    def __init__(self, creds):
        self.creds = creds

    def ensure_valid(self):
        refresh_credentials(self.creds)
        return self.creds


def create_token(
    client_secrets_path: str,
    output_path: str,
    scopes: Optional[List[str]] = None
) -> bool:
    """
    Run the installed-app OAuth flow and save the resulting user token.

    Args:
        client_secrets_path: Path to the client_secrets.json (OAuth client credentials)
        output_path: Path where the new token should be saved
        scopes: Scopes to request (defaults to DRIVE_SCOPES)

    Returns:
        True if successful, False otherwise
    """
    from google_auth_oauthlib.flow import InstalledAppFlow

    if not os.path.exists(client_secrets_path):
        logger.error(f"Client credentials file not found: {client_secrets_path}")
        return False

    scopes = scopes or DRIVE_SCOPES

    output_dir = os.path.dirname(output_path)
    if output_dir:
        os.makedirs(output_dir, exist_ok=True)

    logger.info(f"Requesting OAuth token for scopes: {', '.join(scopes)}")
    try:
        flow = InstalledAppFlow.from_client_secrets_file(client_secrets_path, scopes)
        creds = flow.run_local_server(port=0)
    except Exception as e:
        logger.error(f"Failed to complete OAuth flow: {e}")
        return False
    logger.info("User authorization completed via browser.")

    with open(output_path, "w") as token_file:
        token_file.write(creds.to_json())
    logger.info(f"Token saved to {output_path}")
    return True
