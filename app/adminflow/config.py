import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str
    app_url: str

    github_pat: str
    github_organization: str
    github_api_url: str

    slack_bot_token: str
    slack_team_id: str
    slack_default_channels: tuple[str, ...]
    slack_api_url: str

    directory_timeout_seconds: int
    directory_max_workers: int

    mailgun_api_key: str
    mailgun_domain: str
    mailgun_api_url: str
    mailgun_timeout_seconds: int
    default_from_email: str
    admin_email: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _split_csv(raw: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///adminflow.db"),
        app_url=_getenv("APP_URL", "http://localhost:8080"),
        github_pat=_getenv("GITHUB_PAT"),
        github_organization=_getenv("GITHUB_ORGANIZATION"),
        github_api_url=_getenv("GITHUB_API_URL", "https://api.github.com"),
        slack_bot_token=_getenv("SLACK_BOT_TOKEN"),
        slack_team_id=_getenv("SLACK_TEAM_ID"),
        slack_default_channels=_split_csv(_getenv("SLACK_DEFAULT_CHANNELS")),
        slack_api_url=_getenv("SLACK_API_URL", "https://slack.com/api"),
        directory_timeout_seconds=_getenv_int("DIRECTORY_TIMEOUT_SECONDS", 15),
        directory_max_workers=max(1, _getenv_int("DIRECTORY_MAX_WORKERS", 4)),
        mailgun_api_key=_getenv("MAILGUN_API_KEY"),
        mailgun_domain=_getenv("MAILGUN_DOMAIN"),
        mailgun_api_url=_getenv("MAILGUN_API_URL", "https://api.mailgun.net/v3"),
        mailgun_timeout_seconds=_getenv_int("MAILGUN_TIMEOUT_SECONDS", 15),
        default_from_email=_getenv("DEFAULT_FROM_EMAIL", "noreply@example.com"),
        admin_email=_getenv("ADMIN_EMAIL", "admin@example.com"),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "APP_URL": s.app_url,
        # directory integrations
        "GITHUB_PAT": s.github_pat,
        "GITHUB_ORGANIZATION": s.github_organization,
        "GITHUB_API_URL": s.github_api_url,
        "SLACK_BOT_TOKEN": s.slack_bot_token,
        "SLACK_TEAM_ID": s.slack_team_id,
        "SLACK_DEFAULT_CHANNELS": s.slack_default_channels,
        "SLACK_API_URL": s.slack_api_url,
        "DIRECTORY_TIMEOUT_SECONDS": s.directory_timeout_seconds,
        "DIRECTORY_MAX_WORKERS": s.directory_max_workers,
        # outbound email
        "MAILGUN_API_KEY": s.mailgun_api_key,
        "MAILGUN_DOMAIN": s.mailgun_domain,
        "MAILGUN_API_URL": s.mailgun_api_url,
        "MAILGUN_TIMEOUT_SECONDS": s.mailgun_timeout_seconds,
        "DEFAULT_FROM_EMAIL": s.default_from_email,
        "ADMIN_EMAIL": s.admin_email,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        "MAX_CONTENT_LENGTH": 1 * 1024 * 1024,
    }
