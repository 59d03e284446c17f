import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "default-secret-key")
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", f"sqlite:///{BASE_DIR / 'bookmarkly.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    GOOGLE_CLIENT_ID = os.environ.get("GOOGLE_CLIENT_ID", "")
    GOOGLE_CLIENT_SECRET = os.environ.get("GOOGLE_CLIENT_SECRET", "")
    OAUTH_HTTP_TIMEOUT = float(os.environ.get("OAUTH_HTTP_TIMEOUT", "10"))
    OAUTH_STATE_MAX_AGE = int(os.environ.get("OAUTH_STATE_MAX_AGE", "600"))

    SESSION_TTL_SECONDS = int(os.environ.get("SESSION_TTL_SECONDS", "3600"))
    REFRESH_TTL_SECONDS = int(os.environ.get("REFRESH_TTL_SECONDS", "2592000"))

    SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "1") == "1"
    HOUSEKEEPING_INTERVAL_MINUTES = int(
        os.environ.get("HOUSEKEEPING_INTERVAL_MINUTES", "15")
    )
    WORKSPACE_IDLE_MINUTES = int(os.environ.get("WORKSPACE_IDLE_MINUTES", "30"))

    REALTIME_POLL_SECONDS = float(os.environ.get("REALTIME_POLL_SECONDS", "0.5"))
    REALTIME_HEARTBEAT_SECONDS = float(
        os.environ.get("REALTIME_HEARTBEAT_SECONDS", "15")
    )
    REALTIME_STREAM_SECONDS = float(os.environ.get("REALTIME_STREAM_SECONDS", "300"))
    TAG_MESSAGE_SECONDS = float(os.environ.get("TAG_MESSAGE_SECONDS", "2.5"))


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SCHEDULER_ENABLED = False
    GOOGLE_CLIENT_ID = "test-client"
    GOOGLE_CLIENT_SECRET = "test-secret"
    REALTIME_POLL_SECONDS = 0.01
    REALTIME_STREAM_SECONDS = 0.05
