"""Authentication commands for the driveup CLI."""

import sys

import click

from driveup.sdk import auth


@click.group('auth')
def auth_group():
    """Manage the OAuth token used for uploads."""
    pass


@auth_group.command('login')
@click.option('--client-secrets', required=True, type=click.Path(exists=True, dir_okay=False),
              help='OAuth client credentials (client_secrets.json) from Google Cloud Console.')
@click.option('--token-file', default=None,
              help='Where to save the token. Defaults to auth.token_file or the config directory.')
def login(client_secrets, token_file):
    """Authorize driveup in the browser and save the resulting token."""
    output_path = token_file or auth.get_token_path()
    if not auth.create_token(client_secrets, output_path):
        click.secho("Error: authorization did not complete.", fg="red")
        sys.exit(1)
    click.echo(f"✓ Token saved to {output_path}")
    if token_file:
        click.echo("\nTo use this token by default:")
        click.echo(f"  driveup config set auth.token_file {token_file}")


@auth_group.command('status')
def status():
    """Show which credentials uploads will use and whether they are valid."""
    try:
        creds, source = auth.get_credentials()
        auth.refresh_credentials(creds)
    except Exception as e:
        click.secho(f"✗ {e}", fg="red")
        sys.exit(1)
    click.secho(f"✓ Credentials valid ({source})", fg="green")
