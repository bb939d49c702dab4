"""Global pytest configuration."""

import os

# Set DATABASE_URL for tests before any imports; tests that touch the store
# build their own file-backed database under tmp_path
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
