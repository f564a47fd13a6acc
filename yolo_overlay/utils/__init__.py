from .logger_setup import setup_logging, log_debug, log_warning

__all__ = ['setup_logging', 'log_debug', 'log_warning']
