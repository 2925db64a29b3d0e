import logging
import os

import colorlog

LOGGER_NAME = "nitro_bot"

# Custom SUCCESS level between INFO and WARNING
SUCCESS_LEVEL = 25
logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")

log_colors = {
    'DEBUG': 'cyan',
    'INFO': 'white',
    'SUCCESS': 'green',
    'WARNING': 'yellow',
    'ERROR': 'red',
    'CRITICAL': 'bold_red',
}


class AccountLogger(logging.LoggerAdapter):
    """Prefixes every message with the positional account label."""

    def process(self, msg, kwargs):
        context = self.extra.get('context') if self.extra else None
        if context:
            msg = f"[{context}] {msg}"
        return msg, kwargs

    def success(self, msg, *args, **kwargs):
        self.log(SUCCESS_LEVEL, msg, *args, **kwargs)


def setup_logging(level=None) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    level = level or os.getenv("NITRO_LOG_LEVEL", "INFO")
    logger.setLevel(str(level).upper())
    if not any(getattr(h, '_nitro_handler', False) for h in logger.handlers):
        formatter = colorlog.ColoredFormatter(
            "%(log_color)s%(asctime)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors=log_colors,
        )
        handler = logging.StreamHandler()
        handler.setFormatter(formatter)
        handler._nitro_handler = True
        logger.addHandler(handler)
    return logger


def get_logger(context: str = None) -> AccountLogger:
    return AccountLogger(logging.getLogger(LOGGER_NAME), {'context': context})
