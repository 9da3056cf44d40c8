"""driveup - resumable uploads to Google Drive.

Namespace package containing:
- driveup.sdk: Core SDK (upload engine, Drive transport, credentials, config)
- driveup.cli: Command-line interface
"""

__version__ = "0.1.0"
