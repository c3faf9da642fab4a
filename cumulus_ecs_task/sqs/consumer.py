import enum
import json
import logging
from typing import Callable, List, Optional

from botocore.client import BaseClient
from botocore.exceptions import BotoCoreError, ClientError

from cumulus_ecs_task import config
from cumulus_ecs_task.aws.connect import connect_to
from cumulus_ecs_task.exceptions import ProtocolError, TaskRunnerError, TransportError
from cumulus_ecs_task.lambda_.invocation import Err, InvocationAdapter
from cumulus_ecs_task.runtime.shutdown import LOOP_STATE, LoopState
from cumulus_ecs_task.utils.threads import parallelize

LOG = logging.getLogger(__name__)


class MessageOutcome(enum.Enum):
    DELETED = "deleted"
    # left on the queue, to be redelivered after its visibility timeout
    RETAINED = "retained"


class QueueConsumer:
    """
    Runs the entry point for every message received from an SQS queue. A message is deleted from the queue only
    after the entry point has returned successfully for it, so failed messages are redelivered by SQS. The
    messages of one batch are processed in parallel, at most ``max_concurrency`` at a time.
    """

    def __init__(
        self,
        queue_url: str,
        entry_point: Callable,
        sqs_client: BaseClient = None,
        adapter: InvocationAdapter = None,
        wait_time_seconds: int = None,
        max_number_of_messages: int = None,
        max_concurrency: Optional[int] = None,
    ):
        self.queue_url = queue_url
        self.entry_point = entry_point
        self.sqs_client = sqs_client or connect_to().sqs
        self.adapter = adapter or InvocationAdapter()
        self.wait_time_seconds = (
            config.SQS_WAIT_TIME_SECONDS if wait_time_seconds is None else wait_time_seconds
        )
        self.max_number_of_messages = max_number_of_messages or config.SQS_MAX_NUMBER_OF_MESSAGES
        # a batch is always processed, at least one message at a time
        self.max_concurrency = max(
            1, max_concurrency or config.SQS_MAX_CONCURRENCY or self.max_number_of_messages
        )

    def run(self, loop_state: LoopState = LOOP_STATE, run_forever: bool = True) -> int:
        """
        Receives and processes batches until termination is requested, or a single batch if ``run_forever`` is
        False. After a failed receive, the consumer waits for one wait window before trying again.

        :return: the number of receive iterations
        """
        counter = 0
        loop_state.running = True
        try:
            while True:
                counter += 1
                LOG.info("[%s] Getting tasks from %s", counter, self.queue_url)
                try:
                    self.run_iteration()
                except TransportError as e:
                    LOG.error("Unable to receive messages from %s, trying again: %s", self.queue_url, e)
                    if run_forever:
                        loop_state.wait(self.wait_time_seconds)
                except Exception as e:
                    LOG.exception(
                        "Unable to process messages from %s, trying again: %s", self.queue_url, e
                    )
                if not run_forever or loop_state.termination_requested:
                    break
        finally:
            loop_state.running = False
        LOG.info("Exiting")
        return counter

    def run_iteration(self) -> List[MessageOutcome]:
        messages = self.receive()
        if not messages:
            LOG.info("There are no new messages in the queue. Polling again!")
            return []
        return parallelize(self.process_message, messages, size=self.max_concurrency)

    def receive(self) -> List[dict]:
        try:
            response = self.sqs_client.receive_message(
                QueueUrl=self.queue_url,
                WaitTimeSeconds=self.wait_time_seconds,
                MaxNumberOfMessages=self.max_number_of_messages,
            )
        except (ClientError, BotoCoreError) as e:
            raise TransportError(f"ReceiveMessage failed: {e}") from e
        return response.get("Messages") or []

    def process_message(self, message: dict) -> MessageOutcome:
        receipt = message.get("ReceiptHandle")
        try:
            event = self.parse_body(message)
        except ProtocolError as e:
            LOG.error("Leaving message %s on the queue: %s", message.get("MessageId"), e)
            return MessageOutcome.RETAINED

        LOG.info("received message from queue, executing the task")
        result = self.adapter.invoke(self.entry_point, event)
        if isinstance(result, Err):
            LOG.error("Task failed, leaving message on the queue for redelivery: %s", result.error)
            return MessageOutcome.RETAINED

        try:
            self.delete(receipt)
        except TaskRunnerError as e:
            LOG.error("Unable to delete message %s from the queue: %s", receipt, e)
            return MessageOutcome.RETAINED
        LOG.info("message with handle %s deleted from the queue", receipt)
        return MessageOutcome.DELETED

    @staticmethod
    def parse_body(message: dict):
        body = message.get("Body")
        if not body:
            raise ProtocolError("Message has no body")
        try:
            return json.loads(body)
        except (ValueError, RecursionError) as e:
            raise ProtocolError(f"Message body is not valid JSON: {e}") from e

    def delete(self, receipt: str) -> None:
        try:
            self.sqs_client.delete_message(QueueUrl=self.queue_url, ReceiptHandle=receipt)
        except (ClientError, BotoCoreError) as e:
            raise TransportError(f"DeleteMessage failed: {e}") from e
