import os

# Settings are read at import time; keep the suite off any local .env values
os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("TEXT_CACHE_BACKEND", "memory")
