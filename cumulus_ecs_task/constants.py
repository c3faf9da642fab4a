import os

# name of the application, used as prefix of the log sender
APP_NAME = "cumulus-ecs-task"

# AWS region used if none is configured
AWS_REGION_US_EAST_1 = "us-east-1"

# default directory that Lambda layers are extracted to
DEFAULT_LAYERS_DIRECTORY = "/opt/"

# default directories (relative to the current working directory) used by the CLI
DEFAULT_TASK_DIRECTORY = os.path.join(os.getcwd(), "task")
DEFAULT_WORK_DIRECTORY = os.path.join(os.getcwd(), ".tmp-work")

# file name of the downloaded function package inside the work directory
FUNCTION_ARCHIVE_NAME = "fn.zip"

# name of the directory (inside the task directory) that may hold a bundled message adapter
MESSAGE_ADAPTER_DIR_NAME = "cumulus-message-adapter"
ENV_MESSAGE_ADAPTER_DIR = "CUMULUS_MESSAGE_ADAPTER_DIR"

# marker passed to every handler invocation, identifying the container execution environment
INVOCATION_VIA = "ECS"

# position of the function (or layer) name inside a Lambda ARN
LAMBDA_ARN_NAME_FIELD = 6
LAMBDA_ARN_PREFIX = "arn:aws:lambda"

# long polling wait time for SQS ReceiveMessage (the maximum allowed by SQS)
SQS_MAX_WAIT_TIME_SECONDS = 20
SQS_MAX_BATCH_SIZE = 10

# truthy/falsy strings for environment variables
TRUE_STRINGS = ("1", "true", "True", "yes")
FALSE_STRINGS = ("0", "false", "False", "no")

LOG_LEVELS = ("debug", "info", "warn", "warning", "error")
LOG_FORMATS = ("json", "plain")

# default memory limit reported by the synthetic invocation context
DEFAULT_MEMORY_LIMIT = 1536

# limits of the error and cause fields of SendTaskFailure
TASK_FAILURE_ERROR_MAX_LENGTH = 256
TASK_FAILURE_CAUSE_MAX_LENGTH = 32768
