# backend/assetdesk/logging_cfg.py
import logging
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(app):
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    fmt = logging.Formatter(LOG_FORMAT)

    # Service modules log under the package name; route them through the app's handlers.
    package_logger = logging.getLogger("assetdesk")
    package_logger.setLevel(level)

    log_file = app.config.get("LOG_FILE")
    if log_file:
        handler = RotatingFileHandler(log_file, maxBytes=2_000_000, backupCount=5, encoding="utf-8")
        handler.setLevel(level)
        handler.setFormatter(fmt)
        app.logger.addHandler(handler)
        package_logger.addHandler(handler)

    app.logger.setLevel(level)
