import dataclasses
import json
import logging
from typing import Any, Optional, Union

from cumulus_ecs_task.exceptions import ProtocolError, TaskRunnerError
from cumulus_ecs_task.stepfunctions.client import ActivityClient

LOG = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class WorkItem:
    payload: Any
    token: str


@dataclasses.dataclass(frozen=True)
class NoWork:
    pass


@dataclasses.dataclass(frozen=True)
class Work:
    item: WorkItem


@dataclasses.dataclass(frozen=True)
class PollError:
    error: TaskRunnerError

    @property
    def token(self) -> Optional[str]:
        """The task token the error was received with, if the poll got as far as obtaining one."""
        return getattr(self.error, "token", None)


PollOutcome = Union[NoWork, Work, PollError]


class ActivityPoller:
    """
    Asks Step Functions for the next task of an activity. A single call to ``poll`` makes a single
    ``GetActivityTask`` request, which blocks on the server side until a task is available or the wait window
    has passed.
    """

    def __init__(self, client: ActivityClient, worker_name: str = None):
        self.client = client
        self.worker_name = worker_name

    def poll(self, activity_arn: str) -> PollOutcome:
        try:
            response = self.client.get_activity_task(activity_arn, worker_name=self.worker_name)
        except TaskRunnerError as e:
            return PollError(e)

        token = response.get("taskToken")
        document = response.get("input")
        if not token or not document:
            LOG.info("No tasks in the activity queue")
            return NoWork()

        try:
            payload = json.loads(document)
        except (ValueError, RecursionError) as e:
            return PollError(ProtocolError(f"Activity task input is not valid JSON: {e}", token=token))
        return Work(WorkItem(payload=payload, token=token))
