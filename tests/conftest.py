"""Pytest configuration and fixtures."""

import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for azure_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

SUBSCRIPTION_ID = "12345678-1234-1234-1234-123456789012"
TENANT_ID = "87654321-4321-4321-4321-210987654321"
CLIENT_ID = "abcdefab-cdef-abcd-efab-cdefabcdefab"
CLIENT_SECRET = "not-a-real-secret"


@pytest.fixture
def credential_env(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set a complete, valid set of credential environment variables."""
    env = {
        "AZURE_SUBSCRIPTION_ID": SUBSCRIPTION_ID,
        "AZURE_TENANT_ID": TENANT_ID,
        "AZURE_CLIENT_ID": CLIENT_ID,
        "AZURE_CLIENT_SECRET": CLIENT_SECRET,
    }
    monkeypatch.delenv("AZURE_LOCATION", raising=False)
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env
