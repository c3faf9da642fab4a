import logging
import os
from typing import Optional

from cumulus_ecs_task.constants import (
    AWS_REGION_US_EAST_1,
    DEFAULT_LAYERS_DIRECTORY,
    FALSE_STRINGS,
    LOG_FORMATS,
    LOG_LEVELS,
    SQS_MAX_BATCH_SIZE,
    SQS_MAX_WAIT_TIME_SECONDS,
    TRUE_STRINGS,
)


def parse_boolean_env(env_var_name: str) -> Optional[bool]:
    """Parse the value of the given env variable and return True/False, or None if it is not a boolean value."""
    value = os.environ.get(env_var_name, "").lower().strip()
    if value in TRUE_STRINGS:
        return True
    if value in FALSE_STRINGS:
        return False
    return None


def is_env_true(env_var_name: str) -> bool:
    """Whether the given environment variable has a truthy value."""
    return os.environ.get(env_var_name, "").lower().strip() in TRUE_STRINGS


def eval_log_level(env_var_name: str) -> Optional[str]:
    """Get the log level from environment variable"""
    level = os.environ.get(env_var_name, "").lower().strip()
    return level if level in LOG_LEVELS else None


def parse_int_env(
    env_var_name: str, default: Optional[int] = None, minimum: Optional[int] = None
) -> Optional[int]:
    value = os.environ.get(env_var_name, "").strip()
    if not value:
        return default
    try:
        result = int(value)
    except ValueError:
        LOG.warning("Ignoring non-integer value %r of %s", value, env_var_name)
        return default
    if minimum is not None and result < minimum:
        LOG.warning("Raising value %s of %s to the minimum of %s", result, env_var_name, minimum)
        return minimum
    return result


def parse_float_env(env_var_name: str, default: float) -> float:
    value = os.environ.get(env_var_name, "").strip()
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        LOG.warning("Ignoring non-numeric value %r of %s", value, env_var_name)
        return default


LOG = logging.getLogger(__name__)

# region of the Lambda, Step Functions and SQS clients
AWS_DEFAULT_REGION = os.environ.get("AWS_DEFAULT_REGION", "").strip() or AWS_REGION_US_EAST_1

# optional endpoint override for all AWS clients (e.g., to target an emulator)
AWS_ENDPOINT_URL = os.environ.get("AWS_ENDPOINT_URL", "").strip() or None

# directory the layers of the function are extracted to
LAYERS_DIRECTORY = os.environ.get("LAYERS_DIRECTORY", "").strip() or DEFAULT_LAYERS_DIRECTORY

# whether to enable verbose debug logging
DEBUG = is_env_true("DEBUG")

# explicit log level, takes precedence over DEBUG
LOG_LEVEL = eval_log_level("LOG_LEVEL")

# either "json" (one JSON document per line) or "plain"
LOG_FORMAT = os.environ.get("LOG_FORMAT", "").lower().strip()
if LOG_FORMAT not in LOG_FORMATS:
    LOG_FORMAT = "json"

# whether the service modes keep polling after the first iteration (None means unset -> run forever)
RUN_FOREVER = parse_boolean_env("RUN_FOREVER")

# interval (in milliseconds) between activity heartbeats, None disables heartbeats
HEARTBEAT_INTERVAL = parse_int_env("HEARTBEAT_INTERVAL")

# long polling wait time of the queue consumer
SQS_WAIT_TIME_SECONDS = min(
    parse_int_env("SQS_WAIT_TIME_SECONDS", SQS_MAX_WAIT_TIME_SECONDS), SQS_MAX_WAIT_TIME_SECONDS
)

# number of messages requested per receive call
SQS_MAX_NUMBER_OF_MESSAGES = max(
    min(parse_int_env("SQS_MAX_NUMBER_OF_MESSAGES", 1), SQS_MAX_BATCH_SIZE), 1
)

# how many messages of one batch are processed in parallel (defaults to the batch size)
SQS_MAX_CONCURRENCY = parse_int_env("SQS_MAX_CONCURRENCY", minimum=1)

# socket read timeout for the long polling GetActivityTask call, must exceed the server-side wait
ACTIVITY_POLL_READ_TIMEOUT = parse_float_env("ACTIVITY_POLL_READ_TIMEOUT", 70)

# optional worker name reported to Step Functions when polling for activity tasks
ACTIVITY_WORKER_NAME = os.environ.get("ACTIVITY_WORKER_NAME", "").strip() or None

# timeout (in seconds) of a single artifact download attempt
DOWNLOAD_TIMEOUT = parse_float_env("DOWNLOAD_TIMEOUT", 30)

# how often a download is retried after a timeout
DOWNLOAD_MAX_RETRIES = parse_int_env("DOWNLOAD_MAX_RETRIES", 10)

# initial interval (in seconds) of the exponential download backoff
DOWNLOAD_RETRY_INITIAL_INTERVAL = parse_float_env("DOWNLOAD_RETRY_INITIAL_INTERVAL", 1)

# set log levels immediately, but will be overwritten later by setup_logging
if DEBUG:
    logging.getLogger("").setLevel(logging.DEBUG)
    logging.getLogger("cumulus_ecs_task").setLevel(logging.DEBUG)
