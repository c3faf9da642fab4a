"""
The three ways of running a Lambda function in the container: once with a given input, as a consumer of an SQS
queue, or as a worker of a Step Functions activity.
"""
import logging
from typing import Any, Optional

from cumulus_ecs_task import config
from cumulus_ecs_task.exceptions import ConfigurationError
from cumulus_ecs_task.lambda_.installer import EntryPoint, PackageInstaller
from cumulus_ecs_task.lambda_.invocation import Err, InvocationAdapter
from cumulus_ecs_task.logging.setup import set_log_sender
from cumulus_ecs_task.runtime.shutdown import LOOP_STATE, LoopState, install_signal_handlers
from cumulus_ecs_task.sqs.consumer import QueueConsumer
from cumulus_ecs_task.stepfunctions.client import ActivityClient
from cumulus_ecs_task.stepfunctions.coordinator import TaskLifecycleCoordinator
from cumulus_ecs_task.stepfunctions.poller import ActivityPoller
from cumulus_ecs_task.utils.arns import lambda_function_name

LOG = logging.getLogger(__name__)


def _require_string(name: str, value: Any) -> str:
    if not value or not isinstance(value, str):
        raise ConfigurationError(f"{name} string is required")
    return value


def _validate_directories(task_directory: Any, work_directory: Any, layers_directory: Any) -> str:
    _require_string("task_directory", task_directory)
    _require_string("work_directory", work_directory)
    if layers_directory is not None and not isinstance(layers_directory, str):
        raise ConfigurationError("layers_directory should be a string")
    return layers_directory or config.LAYERS_DIRECTORY


def resolve_run_forever(run_forever: Optional[bool]) -> bool:
    """An explicit value wins over ``RUN_FOREVER``, and if neither is set the service runs forever."""
    if run_forever is not None:
        return run_forever
    if config.RUN_FOREVER is not None:
        return config.RUN_FOREVER
    return True


def resolve_heartbeat(heartbeat: Any) -> Optional[int]:
    if heartbeat is None:
        heartbeat = config.HEARTBEAT_INTERVAL
    if heartbeat is None:
        return None
    if isinstance(heartbeat, bool) or not isinstance(heartbeat, int) or heartbeat < 0:
        raise ConfigurationError("heartbeat must be a non-negative integer (milliseconds)")
    return heartbeat


def install_function(
    lambda_arn: str,
    task_directory: str,
    work_directory: str,
    layers_directory: str,
    installer: PackageInstaller = None,
) -> EntryPoint:
    set_log_sender(lambda_function_name(lambda_arn))
    LOG.info("Downloading the Lambda function")
    installer = installer or PackageInstaller()
    return installer.install(lambda_arn, work_directory, task_directory, layers_directory)


def run_task(
    lambda_arn: str,
    lambda_input: Any,
    task_directory: str,
    work_directory: str,
    layers_directory: str = None,
    installer: PackageInstaller = None,
) -> Any:
    """
    Installs the function and invokes it once with the given input.

    :return: the output of the function
    :raises HandlerError: if the function raised an error
    """
    _require_string("lambda_arn", lambda_arn)
    if not isinstance(lambda_input, (dict, list)):
        raise ConfigurationError("lambda_input object is required")
    layers_directory = _validate_directories(task_directory, work_directory, layers_directory)

    entry_point = install_function(
        lambda_arn, task_directory, work_directory, layers_directory, installer
    )
    result = InvocationAdapter().invoke(entry_point, lambda_input)
    if isinstance(result, Err):
        LOG.error("task failed with an error: %s", result.error)
        raise result.error
    LOG.info("task executed successfully")
    return result.value


def run_service_from_sqs(
    lambda_arn: str,
    sqs_url: str,
    task_directory: str,
    work_directory: str,
    layers_directory: str = None,
    run_forever: Optional[bool] = None,
    installer: PackageInstaller = None,
    sqs_client=None,
    loop_state: LoopState = LOOP_STATE,
) -> None:
    """
    Installs the function and runs it for the messages of the given queue until the process is asked to
    terminate (or for a single batch, if ``run_forever`` resolves to False).
    """
    _require_string("lambda_arn", lambda_arn)
    _require_string("sqs_url", sqs_url)
    layers_directory = _validate_directories(task_directory, work_directory, layers_directory)
    run_forever = resolve_run_forever(run_forever)

    entry_point = install_function(
        lambda_arn, task_directory, work_directory, layers_directory, installer
    )
    install_signal_handlers(loop_state)
    consumer = QueueConsumer(sqs_url, entry_point, sqs_client=sqs_client)
    consumer.run(loop_state, run_forever=run_forever)


def run_service_from_activity(
    lambda_arn: str,
    activity_arn: str,
    task_directory: str,
    work_directory: str,
    layers_directory: str = None,
    heartbeat: Optional[int] = None,
    run_forever: Optional[bool] = None,
    installer: PackageInstaller = None,
    activity_client: ActivityClient = None,
    loop_state: LoopState = LOOP_STATE,
) -> None:
    """
    Installs the function and runs it for the tasks of the given Step Functions activity until the process is
    asked to terminate (or for a single poll, if ``run_forever`` resolves to False).

    :param heartbeat: interval between task heartbeats in milliseconds, heartbeats are disabled if unset or 0
    """
    _require_string("lambda_arn", lambda_arn)
    _require_string("activity_arn", activity_arn)
    layers_directory = _validate_directories(task_directory, work_directory, layers_directory)
    heartbeat = resolve_heartbeat(heartbeat)
    run_forever = resolve_run_forever(run_forever)

    entry_point = install_function(
        lambda_arn, task_directory, work_directory, layers_directory, installer
    )
    install_signal_handlers(loop_state)
    client = activity_client or ActivityClient()
    coordinator = TaskLifecycleCoordinator(
        activity_arn,
        entry_point,
        client,
        poller=ActivityPoller(client, worker_name=config.ACTIVITY_WORKER_NAME),
        heartbeat_interval=heartbeat,
    )
    coordinator.run(loop_state, run_forever=run_forever)
