import json
import logging
from typing import Any, Optional

import click
from rich.console import Console
from rich.markup import escape

from cumulus_ecs_task import config, service
from cumulus_ecs_task.constants import DEFAULT_TASK_DIRECTORY, DEFAULT_WORK_DIRECTORY
from cumulus_ecs_task.exceptions import (
    ConfigurationError,
    HandlerError,
    RunnerExit,
    TaskRunnerError,
)
from cumulus_ecs_task.logging.setup import setup_logging_from_config
from cumulus_ecs_task.utils.files import recreate_dir, rm_rf
from cumulus_ecs_task.utils.json import dumps

LOG = logging.getLogger(__name__)

console = Console(stderr=True)


def _parse_json(ctx: click.Context, param: click.Parameter, value: Optional[str]) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except ValueError as e:
        raise click.BadParameter(f"not a valid JSON document: {e}")


@click.command(name="cumulus-ecs-task")
@click.option(
    "--directory",
    "-d",
    "task_directory",
    default=DEFAULT_TASK_DIRECTORY,
    show_default=True,
    help="path to task directory",
)
@click.option(
    "--work-directory",
    "-w",
    default=DEFAULT_WORK_DIRECTORY,
    show_default=True,
    help="path to temporary working directory",
)
@click.option(
    "--lambda-arn", "-l", help="the arn (or name) of the lambda function that will run on ecs"
)
@click.option("--activity-arn", "-a", help="the arn of the step function activity for this task")
@click.option("--sqs-url", help="the url of the sqs queue to consume messages from")
@click.option(
    "--lambda-input",
    callback=_parse_json,
    help="JSON input to run the lambda function with once",
)
@click.option(
    "--layers-directory",
    help=f"path to extract lambda layers to (default: {config.LAYERS_DIRECTORY})",
)
@click.option(
    "--heartbeat",
    type=click.IntRange(min=0),
    help="number of milliseconds between activity heartbeats",
)
@click.option(
    "--run-forever/--run-once",
    default=None,
    help="whether to keep polling for work after the first iteration",
)
@click.pass_context
def cli(
    ctx: click.Context,
    task_directory: str,
    work_directory: str,
    lambda_arn: Optional[str],
    activity_arn: Optional[str],
    sqs_url: Optional[str],
    lambda_input: Any,
    layers_directory: Optional[str],
    heartbeat: Optional[int],
    run_forever: Optional[bool],
):
    """
    Runs a Lambda function inside a container, either once (--lambda-input), as a worker of a Step Functions
    activity (--activity-arn), or as a consumer of an SQS queue (--sqs-url).
    """
    setup_logging_from_config()
    try:
        output = run(
            task_directory=task_directory,
            work_directory=work_directory,
            lambda_arn=lambda_arn,
            activity_arn=activity_arn,
            sqs_url=sqs_url,
            lambda_input=lambda_input,
            layers_directory=layers_directory,
            heartbeat=heartbeat,
            run_forever=run_forever,
        )
    except RunnerExit as e:
        if e.code:
            console.print(f"[red]error[/red] {escape(str(e))}")
        ctx.exit(e.code)
    if output is not None:
        click.echo(output)


def run(
    task_directory: str,
    work_directory: str,
    lambda_arn: Optional[str],
    activity_arn: Optional[str] = None,
    sqs_url: Optional[str] = None,
    lambda_input: Any = None,
    layers_directory: Optional[str] = None,
    heartbeat: Optional[int] = None,
    run_forever: Optional[bool] = None,
) -> Optional[str]:
    """
    Selects the run mode from the given options and runs it in freshly created task and work directories.

    :return: the serialized output of a single task run, None for the service modes
    :raises RunnerExit: with a non-zero code if the configuration is invalid or the task failed
    """
    if not activity_arn and not sqs_url and lambda_input is None:
        raise RunnerExit("one of --activity-arn, --sqs-url or --lambda-input is required", code=1)

    recreate_dir(task_directory)
    recreate_dir(work_directory)
    try:
        if activity_arn:
            service.run_service_from_activity(
                lambda_arn,
                activity_arn,
                task_directory,
                work_directory,
                layers_directory=layers_directory,
                heartbeat=heartbeat,
                run_forever=run_forever,
            )
            return None
        if sqs_url:
            service.run_service_from_sqs(
                lambda_arn,
                sqs_url,
                task_directory,
                work_directory,
                layers_directory=layers_directory,
                run_forever=run_forever,
            )
            return None
        output = service.run_task(
            lambda_arn,
            lambda_input,
            task_directory,
            work_directory,
            layers_directory=layers_directory,
        )
        try:
            return dumps(output)
        except (TypeError, ValueError) as e:
            raise RunnerExit(f"task output is not serializable: {e}", code=1) from e
    except HandlerError as e:
        raise RunnerExit(f"task failed with {e}", code=1) from e
    except ConfigurationError as e:
        raise RunnerExit(f"invalid configuration: {e}", code=1) from e
    except TaskRunnerError as e:
        LOG.exception("Unable to run the task")
        raise RunnerExit(f"{type(e).__name__}: {e}", code=1) from e
    finally:
        rm_rf(work_directory)


def main():
    cli()


if __name__ == "__main__":
    main()
