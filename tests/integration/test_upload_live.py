"""
Integration tests for 'driveup upload' and 'driveup verify' against Drive.

The source spans several 256 KiB chunks so the resumable protocol is
exercised end to end, including the final short chunk.
"""

import os

import pytest

CHUNK = 256 * 1024


@pytest.fixture
def payload(tmp_path):
    path = tmp_path / "driveup-integration.bin"
    path.write_bytes(os.urandom(3 * CHUNK + 1234))
    return str(path)


@pytest.mark.integration
def test_chunked_upload_and_verify(cli_runner, folder_id, payload):
    result = cli_runner(["upload", payload, "--folder-id", folder_id, "--chunk-size", "256K", "--fresh"])

    assert result["returncode"] == 0, f"Upload failed: {result['stderr']}"
    uploaded = result["json"]
    assert uploaded["status"] == "completed"
    assert uploaded["confirmed_offset"] == uploaded["total_size"] == 3 * CHUNK + 1234
    assert uploaded["id"], "Upload result carries no file id"

    verified = cli_runner(["verify", uploaded["id"], payload])
    assert verified["returncode"] == 0, f"Verify failed: {verified['stderr']}"
    assert verified["json"]["match"] is True


@pytest.mark.integration
def test_empty_file_upload(cli_runner, folder_id, tmp_path):
    path = tmp_path / "driveup-empty.txt"
    path.write_bytes(b"")

    result = cli_runner(["upload", str(path), "--folder-id", folder_id, "--fresh"])

    assert result["returncode"] == 0, f"Upload failed: {result['stderr']}"
    assert result["json"]["status"] == "completed"
    assert result["json"]["total_size"] == 0
