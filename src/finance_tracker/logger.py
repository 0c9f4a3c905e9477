import logging
import logging.config
import os


class ColourizedFormatter(logging.Formatter):
    """
    Formatter that colours the level name when writing to a terminal.
    """
    RESET = "\x1b[0m"

    LEVEL_COLORS = {
        logging.DEBUG: "\x1b[90m",
        logging.INFO: "\x1b[32m",
        logging.WARNING: "\x1b[33m",
        logging.ERROR: "\x1b[31m",
        logging.CRITICAL: "\x1b[31;1m",
    }

    def format(self, record: logging.LogRecord) -> str:
        colour = self.LEVEL_COLORS.get(record.levelno)
        if colour is None:
            return super().format(record)

        plain_levelname = record.levelname
        record.levelname = f"{colour}{plain_levelname}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = plain_levelname


# Third-party loggers that are too chatty at INFO (httpx logs every request).
_QUIET_LOGGERS = ("httpx", "httpcore", "websockets")
_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def get_logging_config() -> dict:
    level = os.getenv("LOG_LEVEL", "INFO").upper()
    log_dir = os.getenv("LOG_DIR")

    handlers: dict[str, dict] = {
        "console": {
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",
            "formatter": "colour",
        },
    }
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        handlers["file"] = {
            "class": "logging.FileHandler",
            "filename": os.path.join(log_dir, "finance_tracker.log"),
            "formatter": "plain",
        }
    handler_names = list(handlers)

    loggers: dict[str, dict] = {"": {"handlers": handler_names, "level": level}}
    for name in _UVICORN_LOGGERS:
        loggers[name] = {"handlers": handler_names, "level": "INFO", "propagate": False}
    for name in _QUIET_LOGGERS:
        loggers[name] = {"level": "WARNING"}

    fmt = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "colour": {"()": "finance_tracker.logger.ColourizedFormatter", "format": fmt},
            "plain": {"format": fmt},
        },
        "handlers": handlers,
        "loggers": loggers,
    }


def setup_logging() -> None:
    logging.config.dictConfig(get_logging_config())


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
