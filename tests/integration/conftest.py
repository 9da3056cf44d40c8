"""
Fixtures for driveup integration tests.

These tests upload real files to Google Drive with the user's own
configuration and token. They run only when DRIVEUP_TEST_FOLDER_ID names a
Drive folder the token can write to.
"""

import json
import os
import subprocess
from typing import Any, Dict, List

import pytest

PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


@pytest.fixture(autouse=True)
def isolated_config_dir():
    """Use the real configuration instead of the unit-test sandbox."""
    return None


@pytest.fixture(scope="session")
def folder_id() -> str:
    value = os.getenv("DRIVEUP_TEST_FOLDER_ID")
    if not value:
        pytest.skip("DRIVEUP_TEST_FOLDER_ID not set")
    return value


@pytest.fixture(scope="session")
def cli_runner():
    """
    Factory fixture that executes driveup commands via subprocess.

    Returns dict with:
        - returncode: int (0 for success)
        - stdout: str (raw output)
        - stderr: str (error output)
        - json: parsed stdout if it is valid JSON, None otherwise
    """
    def run_command(command_args: List[str], timeout: int = 600) -> Dict[str, Any]:
        try:
            result = subprocess.run(
                ["python3", "-m", "driveup.cli"] + command_args,
                capture_output=True,
                text=True,
                timeout=timeout,
                cwd=PROJECT_ROOT,
            )
        except subprocess.TimeoutExpired:
            return {"returncode": 124, "stdout": "", "stderr": "Command timed out", "json": None}

        json_data = None
        if result.stdout.strip():
            try:
                json_data = json.loads(result.stdout)
            except json.JSONDecodeError:
                json_data = None
        return {
            "returncode": result.returncode,
            "stdout": result.stdout,
            "stderr": result.stderr,
            "json": json_data,
        }

    return run_command
