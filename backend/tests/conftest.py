"""Root conftest — shared test configuration."""

import os

# Tests never talk to a real payment gateway or database
os.environ.setdefault("PAYMENT_API_SECRET", "portone-test-secret")
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)
