import logging
from logging_loki import LokiHandler
from dotenv import load_dotenv
import os

CONSOLE_LOG_FORMAT = '%(asctime)s - %(name)s - [%(levelname)s] - %(message)s'

# Raised to WARNING on startup
NOISY_LOGGERS = ("pymongo", "motor", "httpx", "httpcore")


class EmptyTagsFilter(logging.Filter):
    """
    Drops records carrying an empty tag value. Attached to the Loki handler only.
    """
    def filter(self, record):
        tags = getattr(record, 'tags', None) or {}
        return all(value not in (None, '') for value in tags.values())


class LogUtil:
    def __init__(self, logger_name: str = "flow_interpreter_service"):

        # Load environment variables
        load_dotenv()

        self.logger_name = logger_name
        self.logger = logging.getLogger(logger_name)
        self.logger.setLevel(logging.DEBUG if os.getenv("DEBUG", "false").lower() == "true" else logging.INFO)

        # Handlers are attached once per logger name
        if not self.logger.handlers:
            loki_handler = self._build_loki_handler()
            if loki_handler is not None:
                self.logger.addHandler(loki_handler)
            self.logger.addHandler(self._build_console_handler())

        for noisy_logger in NOISY_LOGGERS:
            logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    def _build_loki_handler(self):
        loki_url = os.getenv("LOKI_URL", "")
        if not loki_url:
            return None

        handler = LokiHandler(
            url=loki_url,
            tags={
                "application": self.logger_name,
                "environment": os.getenv("APP_ENV", "production"),
                "org_id": os.getenv("ORG_ID", "flow-interpreter")
            },
            version="1"
        )
        handler.addFilter(EmptyTagsFilter())
        return handler

    def _build_console_handler(self):
        handler = logging.StreamHandler()
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(CONSOLE_LOG_FORMAT))
        return handler

    def info(self, service_name: str, message: str):
        self.logger.info(message, extra={"tags": {"service_name": service_name}})

    def error(self, service_name: str, message: str):
        self.logger.error(message, extra={"tags": {"service_name": service_name}})

    def warning(self, service_name: str, message: str):
        self.logger.warning(message, extra={"tags": {"service_name": service_name}})

    def debug(self, service_name: str, message: str):
        self.logger.debug(message, extra={"tags": {"service_name": service_name}})
