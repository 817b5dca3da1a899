# Package
from flask import Blueprint

from siteplan.logging_config import get_logger

logger = get_logger(__name__)

schedule_bp = Blueprint("schedule", __name__)

from siteplan.api import routes
