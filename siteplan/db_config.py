"""Database URI and engine options per deployment environment."""
import os

from siteplan.config import resolve_environment

LOCAL_DEFAULT_URI = "sqlite:///schedule.sqlite"

# Environment -> variables consulted, in order, for the database URL
DATABASE_URL_VARS = {
    "local": ("LOCAL_DATABASE_URL",),
    "sandbox": ("SANDBOX_DATABASE_URL",),
    "production": ("PRODUCTION_DATABASE_URL", "DATABASE_URL"),
}


def postgres_engine_options(application_name: str = "siteplan_scheduler") -> dict:
    """Pooled connection settings for the hosted Postgres databases."""
    from sqlalchemy.pool import QueuePool

    return {
        "poolclass": QueuePool,
        "pool_pre_ping": True,
        "pool_recycle": 280,
        "pool_size": 5,
        "max_overflow": 10,
        "connect_args": {
            "sslmode": "require",
            "connect_timeout": 10,
            "application_name": application_name,
        },
    }


def normalize_database_url(url: str) -> str:
    # SQLAlchemy expects postgresql://
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url


def get_database_config(environment=None):
    """
    Resolve (database_uri, engine_options) for an environment.
    
    Local falls back to a SQLite file and uses no engine options; sandbox and
    production must be configured and get pooled Postgres options.
    
    Raises:
        ValueError: If a hosted environment has no database URL
    """
    env = resolve_environment(environment)
    url = next((os.environ[var] for var in DATABASE_URL_VARS[env] if os.environ.get(var)), None)

    if env == "local":
        return normalize_database_url(url or LOCAL_DEFAULT_URI), None
    if not url:
        raise ValueError(f"{' or '.join(DATABASE_URL_VARS[env])} must be set for the {env} environment")
    return normalize_database_url(url), postgres_engine_options()


def configure_database(app, environment=None):
    """
    Bind database settings onto the Flask config.
    
    A SQLALCHEMY_DATABASE_URI already present (test overrides) is kept.
    """
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config.setdefault("SQLALCHEMY_ECHO", False)

    if app.config.get("SQLALCHEMY_DATABASE_URI"):
        return

    database_uri, engine_options = get_database_config(environment)
    app.config["SQLALCHEMY_DATABASE_URI"] = database_uri
    if engine_options:
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = engine_options
