"""
Thin wrapper around the Step Functions activity API. All botocore errors are translated to the error taxonomy of
the task runner: errors returned by the service become ``ProtocolError``, connection-level errors become
``TransportError``.
"""
import logging
from typing import Optional

from botocore.client import BaseClient
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from cumulus_ecs_task import config
from cumulus_ecs_task.aws.connect import connect_to
from cumulus_ecs_task.constants import (
    TASK_FAILURE_CAUSE_MAX_LENGTH,
    TASK_FAILURE_ERROR_MAX_LENGTH,
)
from cumulus_ecs_task.exceptions import ProtocolError, TransportError

LOG = logging.getLogger(__name__)


def create_stepfunctions_client(read_timeout: float = None) -> BaseClient:
    # GetActivityTask holds the connection open for up to a minute
    client_config = Config(
        read_timeout=config.ACTIVITY_POLL_READ_TIMEOUT if read_timeout is None else read_timeout,
        retries={"max_attempts": 0},
    )
    return connect_to(config=client_config).stepfunctions


def _truncate(value: Optional[str], max_length: int) -> Optional[str]:
    if value is None or len(value) <= max_length:
        return value
    return value[: max_length - 3] + "..."


class ActivityClient:
    def __init__(self, client: BaseClient = None):
        self._client = client or create_stepfunctions_client()

    def get_activity_task(self, activity_arn: str, worker_name: str = None) -> dict:
        kwargs = {"activityArn": activity_arn}
        if worker_name:
            kwargs["workerName"] = worker_name
        return self._call("GetActivityTask", self._client.get_activity_task, **kwargs)

    def send_heartbeat(self, token: str) -> None:
        self._call("SendTaskHeartbeat", self._client.send_task_heartbeat, taskToken=token)

    def send_success(self, token: str, output: str) -> None:
        self._call("SendTaskSuccess", self._client.send_task_success, taskToken=token, output=output)

    def send_failure(self, token: str, error: str, cause: str) -> None:
        self._call(
            "SendTaskFailure",
            self._client.send_task_failure,
            taskToken=token,
            error=_truncate(error, TASK_FAILURE_ERROR_MAX_LENGTH),
            cause=_truncate(cause, TASK_FAILURE_CAUSE_MAX_LENGTH),
        )

    @staticmethod
    def _call(operation: str, method, **kwargs) -> dict:
        try:
            return method(**kwargs)
        except ClientError as e:
            raise ProtocolError(f"{operation} failed: {e}", token=kwargs.get("taskToken")) from e
        except BotoCoreError as e:
            raise TransportError(f"{operation} failed: {e}") from e
