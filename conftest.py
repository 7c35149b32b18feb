"""
Global pytest configuration.

Loads a local .env (if any) before tests are collected. The test suite
itself never talks to Azure DevOps; every upstream call is mocked.
"""

from pathlib import Path

from dotenv import load_dotenv


def pytest_configure():
    """Load environment variables from the project root .env file."""
    env_file = Path(__file__).parent / ".env"
    if env_file.exists():
        load_dotenv(env_file, override=False)
