import logging

FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

_loggers = {}


def get_logger(name):
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    if not logger.hasHandlers():
        ch = logging.StreamHandler()
        ch.setLevel(logging.DEBUG)
        formatter = logging.Formatter(FORMAT)
        ch.setFormatter(formatter)
        logger.addHandler(ch)
    _loggers[name] = logger
    return logger


def set_level(level):
    """Apply a level (name or number) to every logger handed out so far."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            raise ValueError(f"Unknown log level: {level}")
    for logger in _loggers.values():
        logger.setLevel(level)
