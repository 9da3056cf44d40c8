"""
Unit tests for credential loading and refresh.

Only the network boundary is mocked: token files are parsed by the real
google.oauth2 code, and refresh failures are raised from Credentials.refresh.
"""

import json
from unittest.mock import MagicMock, patch

import pytest
from google.auth.exceptions import DefaultCredentialsError, RefreshError
from google.oauth2.credentials import Credentials

from driveup.sdk import auth, config
from driveup.sdk.exceptions import CredentialsError


def _write_token(path, refresh_token="refresh"):
    path.write_text(json.dumps({
        "client_id": "test_id",
        "client_secret": "test-secret",
        "refresh_token": refresh_token,
        "token": "access",
        "token_uri": "https://oauth2.googleapis.com/token",
    }))
    return path


def test_token_path_defaults_to_config_dir(isolated_config_dir):
    assert auth.get_token_path() == str(isolated_config_dir / "user_token.json")


def test_token_path_from_config(isolated_config_dir, tmp_path):
    config.set_config_value("auth.token_file", str(tmp_path / "mine.json"))
    assert auth.get_token_path() == str(tmp_path / "mine.json")


def test_missing_token_file_raises(isolated_config_dir):
    with pytest.raises(CredentialsError, match="driveup auth login"):
        auth.get_credentials()


def test_token_file_loaded(tmp_path):
    token = _write_token(tmp_path / "token.json")

    creds, source = auth.get_credentials(token_file=str(token))

    assert isinstance(creds, Credentials)
    assert creds.refresh_token == "refresh"
    assert str(token) in source


def test_adc_mode_from_config(isolated_config_dir):
    config.set_config_value("auth.mode", "adc")
    adc_creds = MagicMock()
    with patch("google.auth.default", return_value=(adc_creds, "my-project")) as default:
        creds, source = auth.get_credentials()

    assert creds is adc_creds
    assert "my-project" in source
    default.assert_called_once_with(scopes=auth.DRIVE_SCOPES)


def test_adc_unavailable_raises():
    with patch("google.auth.default", side_effect=DefaultCredentialsError("none")):
        with pytest.raises(CredentialsError):
            auth.get_credentials(use_adc=True)


class TestRefresh:

    def test_valid_credentials_not_refreshed(self):
        creds = MagicMock(valid=True)
        assert auth.refresh_credentials(creds) is True
        creds.refresh.assert_not_called()

    def test_expired_user_token_without_refresh_token(self):
        creds = Credentials(token=None)
        with pytest.raises(CredentialsError, match="no refresh token"):
            auth.refresh_credentials(creds)

    def test_rejected_refresh_raises_credentials_error(self, tmp_path):
        creds, _ = auth.get_credentials(token_file=str(_write_token(tmp_path / "t.json")))
        creds.token = None
        with patch.object(Credentials, "refresh", side_effect=RefreshError("invalid_grant")):
            with pytest.raises(CredentialsError, match="invalid_grant"):
                auth.refresh_credentials(creds)

    def test_refresher_refreshes_before_use(self):
        creds = MagicMock(valid=False)
        refresher = auth.CredentialsRefresher(creds)

        assert refresher.ensure_valid() is creds
        creds.refresh.assert_called_once()


def test_create_token_missing_client_secrets(tmp_path):
    assert auth.create_token(str(tmp_path / "absent.json"), str(tmp_path / "out.json")) is False


def test_create_token_saves_flow_result(tmp_path):
    secrets = tmp_path / "client_secrets.json"
    secrets.write_text(json.dumps({
        "installed": {
            "client_id": "test_id",
            "project_id": "test-project",
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": "https://oauth2.googleapis.com/token",
            "client_secret": "test-secret",
            "redirect_uris": ["http://localhost"],
        }
    }))
    output = tmp_path / "tokens" / "user_token.json"
    fake_creds = MagicMock()
    fake_creds.to_json.return_value = '{"token": "new"}'

    with patch("google_auth_oauthlib.flow.InstalledAppFlow.run_local_server", return_value=fake_creds):
        assert auth.create_token(str(secrets), str(output)) is True

    assert json.loads(output.read_text()) == {"token": "new"}
