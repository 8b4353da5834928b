"""
Configuration management for the signature reconciler.

Loads settings from environment variables with sensible defaults.
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file from project root
_project_root = Path(__file__).parent.parent.parent
_env_file = _project_root / '.env'
if _env_file.exists():
    load_dotenv(_env_file)


class Config:
    """Configuration settings loaded from environment."""

    # DocuSign OAuth client credentials (refresh-token grant)
    DOCUSIGN_INTEGRATION_KEY: str = os.getenv('DOCUSIGN_INTEGRATION_KEY', '')
    DOCUSIGN_CLIENT_SECRET: str = os.getenv('DOCUSIGN_CLIENT_SECRET', '')
    PROVIDER_HTTP_TIMEOUT_SECONDS: float = float(os.getenv('PROVIDER_HTTP_TIMEOUT_SECONDS', '5'))

    # Poll loop. Fixed delay, no backoff: the caller is holding a request open.
    POLL_MAX_ATTEMPTS: int = int(os.getenv('POLL_MAX_ATTEMPTS', '10'))
    POLL_INTERVAL_SECONDS: float = float(os.getenv('POLL_INTERVAL_SECONDS', '1.0'))
    POLL_DEADLINE_SECONDS: float = float(os.getenv('POLL_DEADLINE_SECONDS', '15'))

    # Backend function invocation (createInvitesAfterInvestorSign)
    FUNCTIONS_BASE_URL: str = os.getenv('FUNCTIONS_BASE_URL', '')
    FUNCTIONS_API_KEY: str = os.getenv('FUNCTIONS_API_KEY', '')

    # Sweep
    SWEEP_CONCURRENCY: int = int(os.getenv('SWEEP_CONCURRENCY', '5'))

    # Logging
    LOG_LEVEL: str = os.getenv('LOG_LEVEL', 'INFO')


# Singleton config instance
config = Config()
