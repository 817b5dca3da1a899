from flask import Flask, jsonify
from flask_cors import CORS

from siteplan.logging_config import configure_logging, get_logger
from siteplan.models import db

logger = get_logger(__name__)


def create_app(test_config=None):
    # Import config after dotenv is loaded
    from siteplan.config import get_config
    from siteplan.db_config import configure_database
    from siteplan.api import schedule_bp

    # Get the appropriate config class based on environment
    config_class = get_config()

    app = Flask(__name__)
    app.config.from_object(config_class)
    if test_config:
        app.config.update(test_config)

    configure_logging(log_level=app.config.get("LOG_LEVEL", "INFO"), log_file=app.config.get("LOG_FILE"))

    # Configure database separately
    configure_database(app)

    # Log the environment being used
    logger.info(f"Starting application in {config_class.ENV} environment")
    logger.info(f"Database URI: {app.config.get('SQLALCHEMY_DATABASE_URI', 'Not set')[:50]}...")

    # Get allowed origins from environment variable
    allowed_origins = app.config.get("CORS_ORIGINS", "*")
    if allowed_origins != "*":
        # Parse comma-separated list if provided
        allowed_origins = [origin.strip() for origin in allowed_origins.split(",")]

    CORS(app,
         resources={r"/api/*": {"origins": allowed_origins}},
         supports_credentials=True,
         allow_headers=["Content-Type", "Authorization"],
         methods=["GET", "POST", "DELETE", "OPTIONS"])

    db.init_app(app)

    # Local SQLite databases are created on first start; other environments are provisioned
    if config_class.ENV == "local" and not app.config.get("TESTING"):
        with app.app_context():
            db.create_all()

    app.register_blueprint(schedule_bp, url_prefix="/api")

    @app.route("/health", methods=["GET"])
    def health():
        return jsonify({"status": "ok", "environment": config_class.ENV}), 200

    return app
