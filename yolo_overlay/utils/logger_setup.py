import logging
import os
from yolo_overlay import config

LOGGER_NAME = 'YoloOverlayApp'
DEBUG_FORMAT = '%(asctime)s - %(levelname)s - %(threadName)s - %(funcName)s - %(message)s'

app_logger = None

def setup_logging():
    global app_logger

    if app_logger is None:
        app_logger = logging.getLogger(LOGGER_NAME)
    app_logger.setLevel(logging.DEBUG if config.IS_DEBUG_MODE else logging.INFO)

    # Clear existing handlers to prevent duplicate messages if called multiple times
    if app_logger.hasHandlers():
        app_logger.handlers.clear()

    if config.IS_DEBUG_MODE:
        try:
            log_file_path = os.path.abspath(config.DEBUG_LOG_FILE)
            fh = logging.FileHandler(log_file_path, mode='w')
            fh.setLevel(logging.DEBUG)
            fh.setFormatter(logging.Formatter(DEBUG_FORMAT))
            app_logger.addHandler(fh)
            app_logger.info(f"Logging to file {log_file_path} initialized.")
        except OSError as e:
            # Fall back to console output for debug messages if the file cannot be opened
            ch = logging.StreamHandler()
            ch.setLevel(logging.DEBUG)
            ch.setFormatter(logging.Formatter(DEBUG_FORMAT))
            app_logger.addHandler(ch)
            app_logger.warning(f"File logger setup failed for {config.DEBUG_LOG_FILE}: {e}. Using console logging.")
    else:
        ch = logging.StreamHandler()
        ch.setLevel(logging.INFO)
        ch.setFormatter(logging.Formatter('%(asctime)s - %(levelname)s - %(message)s'))
        app_logger.addHandler(ch)
    app_logger.propagate = False
    return app_logger


def get_logger():
    if app_logger is None:
        return logging.getLogger(LOGGER_NAME)
    return app_logger


def log_debug(message, exc_info=False):
    if config.IS_DEBUG_MODE:
        get_logger().debug(message, exc_info=exc_info)


def log_warning(message, exc_info=False):
    get_logger().warning(message, exc_info=exc_info)
