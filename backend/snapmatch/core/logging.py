"""Logging configuration

Services log through named loggers ("face", "payments", "delivery",
"realtime", "security", "api_access") so their output can be filtered per
concern.
"""
import logging

from snapmatch.core.config import settings

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Chatty at INFO; only their warnings are interesting
QUIET_LOGGERS = ("stripe", "botocore", "boto3", "s3transfer", "urllib3", "httpx")


def setup_logging():
    level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S', force=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
