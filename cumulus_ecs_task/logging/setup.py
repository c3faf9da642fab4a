import logging
import sys
import warnings

from cumulus_ecs_task import config
from cumulus_ecs_task.constants import APP_NAME

from .format import AddFormattedAttributes, DefaultFormatter, JsonFormatter

default_log_levels = {
    "boto3": logging.INFO,
    "botocore": logging.ERROR,
    "requests": logging.WARNING,
    "s3transfer": logging.INFO,
    "urllib3": logging.WARNING,
}


def get_log_level_from_config() -> int:
    # overriding the log level if LOG_LEVEL has been set
    if config.LOG_LEVEL:
        return logging._nameToLevel[config.LOG_LEVEL.upper()]

    return logging.DEBUG if config.DEBUG else logging.INFO


def create_default_handler(log_level: int, log_format: str = None) -> logging.Handler:
    log_format = log_format or config.LOG_FORMAT
    if log_format == "json":
        # one JSON document per line on stdout, which is what the container log driver ships
        log_handler = logging.StreamHandler(stream=sys.stdout)
        log_handler.setFormatter(JsonFormatter())
    else:
        log_handler = logging.StreamHandler(stream=sys.stderr)
        log_handler.setFormatter(DefaultFormatter())
        log_handler.addFilter(AddFormattedAttributes())
    log_handler.setLevel(log_level)
    return log_handler


def setup_logging(log_level=logging.INFO, log_format: str = None) -> None:
    """
    Configures the python logging environment for the task runner.

    :param log_level: the optional log level.
    :param log_format: either "json" or "plain", defaults to ``config.LOG_FORMAT``
    """
    log_handler = create_default_handler(log_level, log_format)

    # replace any existing handlers
    logging.basicConfig(level=log_level, handlers=[log_handler], force=True)

    # disable some logs and warnings
    warnings.filterwarnings("ignore")
    logging.captureWarnings(True)

    # set log levels of loggers
    logging.root.setLevel(log_level)
    logging.getLogger("cumulus_ecs_task").setLevel(log_level)
    for logger, level in default_log_levels.items():
        logging.getLogger(logger).setLevel(max(level, log_level))


def setup_logging_from_config() -> None:
    setup_logging(get_log_level_from_config())


def get_log_sender(function_name: str) -> str:
    return f"{APP_NAME}/{function_name}"


def set_log_sender(function_name: str) -> None:
    """
    Sets the sender of all JSON log records emitted through the root logger handlers to the given function.

    :param function_name: name of the function that is run by this process
    """
    sender = get_log_sender(function_name)
    for handler in logging.root.handlers:
        if isinstance(handler.formatter, JsonFormatter):
            handler.formatter.sender = sender
