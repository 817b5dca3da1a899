import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Base configuration class with common settings."""
    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_FILE = os.environ.get("LOG_FILE")  # None logs to stdout only

    # CORS configuration
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Prefix for minted linked task group ids (e.g. group_1718000000000_ab12cd34e)
    LINKED_GROUP_ID_PREFIX = os.environ.get("LINKED_GROUP_ID_PREFIX", "group")


class LocalConfig(Config):
    """Configuration for local development."""
    ENV = "local"
    DEBUG = True


class SandboxConfig(Config):
    """Configuration for sandbox/staging environment."""
    ENV = "sandbox"
    DEBUG = False


class ProductionConfig(Config):
    """Configuration for production environment."""
    ENV = "production"
    DEBUG = False


# Accepted spellings of FLASK_ENV / ENVIRONMENT
ENVIRONMENT_ALIASES = {
    "local": "local", "development": "local", "dev": "local",
    "sandbox": "sandbox", "staging": "sandbox", "stage": "sandbox",
    "production": "production", "prod": "production",
}


def resolve_environment(environment=None):
    """Normalize an environment name; unknown or unset names fall back to 'local'."""
    if environment is None:
        environment = os.environ.get("FLASK_ENV") or os.environ.get("ENVIRONMENT", "local")
    return ENVIRONMENT_ALIASES.get(environment.strip().lower(), "local")


def get_config():
    """Get the configuration class for the current FLASK_ENV / ENVIRONMENT."""
    return {
        "local": LocalConfig,
        "sandbox": SandboxConfig,
        "production": ProductionConfig,
    }[resolve_environment()]
