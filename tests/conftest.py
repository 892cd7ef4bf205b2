import os

import pytest

# Must be set before config.get_settings() is first called by an imported module
os.environ.setdefault("APP_ENV", "testing")

from services import reset_ledger  # noqa: E402


@pytest.fixture(autouse=True)
def reset_state():
    """Reset the shared ledger before each test."""
    reset_ledger()
