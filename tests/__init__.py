import os

# Drafts go to a throwaway in-memory store; must be set before config is imported.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REMOTE_API_URL", "https://remote.test/api")
os.environ.setdefault("ASSET_BASE_URL", "https://remote.test")
