import enum
import logging
from typing import Callable, Optional

from cumulus_ecs_task.exceptions import TaskRunnerError
from cumulus_ecs_task.lambda_.invocation import Err, InvocationAdapter, InvocationResult
from cumulus_ecs_task.runtime.shutdown import LOOP_STATE, LoopState
from cumulus_ecs_task.stepfunctions.client import ActivityClient
from cumulus_ecs_task.stepfunctions.heartbeat import HeartbeatTicker
from cumulus_ecs_task.stepfunctions.poller import ActivityPoller, NoWork, PollError, WorkItem
from cumulus_ecs_task.utils import json as json_utils

LOG = logging.getLogger(__name__)


class IterationOutcome(enum.Enum):
    NO_WORK = "no-work"
    POLL_ERROR = "poll-error"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class TaskLifecycleCoordinator:
    """
    Runs the activity worker loop: poll for a task, invoke the entry point with its input while sending heartbeats,
    and report the outcome for the task token. Exactly one report is sent per task, always after its heartbeat
    has been stopped. Errors while polling or reporting are logged and never end the loop.
    """

    def __init__(
        self,
        activity_arn: str,
        entry_point: Callable,
        client: ActivityClient,
        poller: ActivityPoller = None,
        ticker: HeartbeatTicker = None,
        adapter: InvocationAdapter = None,
        heartbeat_interval: Optional[int] = None,
    ):
        self.activity_arn = activity_arn
        self.entry_point = entry_point
        self.client = client
        self.poller = poller or ActivityPoller(client)
        self.ticker = ticker or HeartbeatTicker(client)
        self.adapter = adapter or InvocationAdapter()
        self.heartbeat_interval = heartbeat_interval

    def run(self, loop_state: LoopState = LOOP_STATE, run_forever: bool = True) -> int:
        """
        Runs iterations until termination is requested, or only a single one if ``run_forever`` is False. The
        termination flag is checked after each complete iteration.

        :return: the number of iterations run
        """
        counter = 0
        loop_state.running = True
        try:
            while True:
                counter += 1
                LOG.info("[%s] Getting tasks from %s", counter, self.activity_arn)
                try:
                    self.run_iteration()
                except Exception as e:
                    LOG.exception("Task failed, trying again: %s", e)
                if not run_forever or loop_state.termination_requested:
                    break
        finally:
            loop_state.running = False
        LOG.info("Exiting")
        return counter

    def run_iteration(self) -> IterationOutcome:
        outcome = self.poller.poll(self.activity_arn)
        if isinstance(outcome, NoWork):
            return IterationOutcome.NO_WORK
        if isinstance(outcome, PollError):
            LOG.error("Unable to get a task from %s: %s", self.activity_arn, outcome.error)
            if outcome.token:
                # the task was handed out to us, fail it instead of letting it time out
                self.report_failure(outcome.token, type(outcome.error).__name__, str(outcome.error))
                return IterationOutcome.FAILED
            return IterationOutcome.POLL_ERROR

        item = outcome.item
        result = self.execute(item)
        return self.report(item.token, result)

    def execute(self, item: WorkItem) -> InvocationResult:
        with self.ticker.running(item.token, self.heartbeat_interval):
            return self.adapter.invoke(self.entry_point, item.payload)

    def report(self, token: str, result: InvocationResult) -> IterationOutcome:
        if isinstance(result, Err):
            LOG.error("Task failed with %s", result.error)
            self.report_failure(token, result.error.error_type, result.error.error_message)
            return IterationOutcome.FAILED

        try:
            output = json_utils.dumps(result.value)
        except Exception as e:
            LOG.error("Unable to serialize the task output: %s", e)
            self.report_failure(token, type(e).__name__, str(e))
            return IterationOutcome.FAILED

        try:
            self.client.send_success(token, output)
            LOG.info("task executed successfully")
        except TaskRunnerError as e:
            LOG.error("Unable to report success of task: %s", e)
        return IterationOutcome.SUCCEEDED

    def report_failure(self, token: str, error: str, cause: str) -> None:
        try:
            self.client.send_failure(token, error, cause)
        except TaskRunnerError as e:
            LOG.error("Unable to report failure of task: %s", e)
