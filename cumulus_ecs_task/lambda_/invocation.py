import asyncio
import dataclasses
import inspect
import logging
import time
import uuid
from typing import Any, Callable, Optional, Union

from cumulus_ecs_task.constants import DEFAULT_MEMORY_LIMIT, INVOCATION_VIA
from cumulus_ecs_task.exceptions import HandlerError

LOG = logging.getLogger(__name__)

# remaining time reported to handlers of functions without a configured timeout
DEFAULT_REMAINING_TIME_MILLIS = 15 * 60 * 1000


class LambdaContext(object):
    """The context object passed to a handler, mirroring the one of the managed Lambda runtime."""

    DEFAULT_MEMORY_LIMIT = DEFAULT_MEMORY_LIMIT

    def __init__(
        self,
        function_name: str,
        invoked_function_arn: str = None,
        memory_limit_in_mb: int = None,
        timeout: int = None,
    ):
        self.via = INVOCATION_VIA
        self.function_name = function_name
        self.function_version = "$LATEST"
        self.invoked_function_arn = invoked_function_arn
        self.aws_request_id = str(uuid.uuid4())
        self.memory_limit_in_mb = memory_limit_in_mb or self.DEFAULT_MEMORY_LIMIT
        self.log_group_name = "/aws/lambda/%s" % function_name
        self.client_context = None
        self.identity = None
        self._deadline = time.time() + timeout if timeout else None

    def get_remaining_time_in_millis(self) -> int:
        if self._deadline is None:
            return DEFAULT_REMAINING_TIME_MILLIS
        return max(0, int((self._deadline - time.time()) * 1000))


@dataclasses.dataclass(frozen=True)
class Ok:
    value: Any


@dataclasses.dataclass(frozen=True)
class Err:
    error: HandlerError


InvocationResult = Union[Ok, Err]


class InvocationAdapter:
    """
    Calls an entry point with an event and a fresh ``LambdaContext``, and turns the outcome into an
    ``InvocationResult``. Handlers returning an awaitable are run to completion.
    """

    def __init__(self, function_name: Optional[str] = None):
        self.function_name = function_name

    def create_context(self, entry_point: Callable) -> LambdaContext:
        return LambdaContext(
            function_name=getattr(entry_point, "function_name", None) or self.function_name,
            invoked_function_arn=getattr(entry_point, "function_arn", None),
            memory_limit_in_mb=getattr(entry_point, "memory_size", None),
            timeout=getattr(entry_point, "timeout", None),
        )

    def invoke(self, entry_point: Callable, payload: Any) -> InvocationResult:
        context = self.create_context(entry_point)
        try:
            result = entry_point(payload, context)
            if inspect.isawaitable(result):
                result = asyncio.run(_await(result))
        except Exception as e:
            LOG.debug("Handler raised %s: %s", type(e).__name__, e, exc_info=True)
            return Err(HandlerError.from_exception(e))
        return Ok(result)


async def _await(awaitable):
    return await awaitable
