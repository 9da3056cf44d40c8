import click
import yaml

from driveup.sdk import config

# Define the schema of allowed configuration keys and their allowed values
ALLOWED_CONFIG = {
    "auth.mode": {
        "type": str,
        "allowed_values": ["token", "adc"]
    },
    "auth.token_file": {
        "type": str
    },
    "upload.chunk_size": {
        "type": int,
        "multiple_of": 256 * 1024
    },
    "upload.max_attempts": {
        "type": int,
        "min": 1
    },
    "upload.base_delay": {
        "type": float,
        "min": 0
    },
    "upload.max_delay": {
        "type": float,
        "min": 0
    },
    "upload.timeout": {
        "type": float,
        "min": 1
    },
    "upload.verify_checksum": {
        "type": bool
    },
}


def _convert(key, value):
    """Convert a command-line string to the type the key expects."""
    expected = ALLOWED_CONFIG[key]["type"]
    if expected is bool:
        if value.lower() not in ("true", "false"):
            raise click.UsageError(f"Invalid value '{value}' for key '{key}'. Use 'true' or 'false'.")
        return value.lower() == "true"
    if expected in (int, float):
        try:
            return expected(value)
        except ValueError:
            raise click.UsageError(f"Invalid value '{value}' for key '{key}'. Expected a number.")
    return value


@click.group()
def config_group():
    """Commands for managing driveup configuration."""
    pass


@config_group.command('view')
def view_config():
    """Displays the current driveup configuration."""
    config_data = config.load_config()
    click.echo(yaml.dump(config_data, default_flow_style=False))


@config_group.command('set')
@click.argument('key')
@click.argument('value')
def set_config(key, value):
    """
    Sets a configuration value for a supported key.

    \b
    Supported Keys:
      - auth.mode: 'token' (OAuth user token) or 'adc' (Application Default Credentials)
      - auth.token_file: Path of the OAuth user token
      - upload.chunk_size: Bytes per chunk, a multiple of 262144 (256 KiB)
      - upload.max_attempts: Attempts per chunk before an upload is interrupted
      - upload.base_delay / upload.max_delay: Retry backoff bounds in seconds
      - upload.timeout: Per-request timeout in seconds
      - upload.verify_checksum: Compare MD5 after upload ('true' or 'false')

    \b
    Examples:
      driveup config set auth.mode adc
      driveup config set upload.chunk_size 33554432
    """
    if key not in ALLOWED_CONFIG:
        raise click.UsageError(f"Configuration key '{key}' is not supported.")

    key_schema = ALLOWED_CONFIG[key]

    # Validate allowed values
    if "allowed_values" in key_schema and value not in key_schema["allowed_values"]:
        allowed = ", ".join(f"'{v}'" for v in key_schema["allowed_values"])
        raise click.UsageError(f"Invalid value '{value}' for key '{key}'. Allowed values are: {allowed}.")

    value = _convert(key, value)
    if "min" in key_schema and value < key_schema["min"]:
        raise click.UsageError(f"Value for '{key}' must be at least {key_schema['min']}.")
    if "multiple_of" in key_schema and (value <= 0 or value % key_schema["multiple_of"]):
        raise click.UsageError(
            f"Value for '{key}' must be a positive multiple of {key_schema['multiple_of']}."
        )

    config.set_config_value(key, value)
    click.echo(f"✓ Set '{key}' to: {value}")

    # Provide helpful guidance for ADC mode
    if key == "auth.mode" and value == "adc":
        click.echo("\nTo use Application Default Credentials, ensure you have authenticated with gcloud:")
        click.echo("  gcloud auth application-default login --scopes="
                   "https://www.googleapis.com/auth/drive.file,https://www.googleapis.com/auth/cloud-platform")
