"""
Rotating file logging for the portal.

Attaches a RotatingFileHandler to the root, Flask and Werkzeug loggers
so request errors end up in <LOG_DIR>/portal.log.
"""
import logging
import os
from logging.handlers import RotatingFileHandler


def setup_logging(app, log_file='portal.log'):
    if app.config.get('TESTING'):
        return

    log_dir = app.config.get('LOG_DIR', 'logs')
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.abspath(os.path.join(log_dir, log_file))
    level = logging.getLevelName(str(app.config.get('LOG_LEVEL', 'INFO')).upper())
    if not isinstance(level, int):
        level = logging.INFO

    # Avoid duplicate handlers on re-run (debug/reloader)
    root = logging.getLogger()
    if any(isinstance(h, RotatingFileHandler) and h.baseFilename == log_path for h in root.handlers):
        return

    file_handler = RotatingFileHandler(log_path, maxBytes=5 * 1024 * 1024, backupCount=3, encoding='utf-8')
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s [%(name)s] %(message)s'))

    root.setLevel(level)
    root.addHandler(file_handler)

    app.logger.addHandler(file_handler)
    app.logger.setLevel(level)

    logging.getLogger('werkzeug').addHandler(file_handler)
