import contextlib
import logging
import time
from typing import Iterator, Optional

from cumulus_ecs_task.exceptions import TaskRunnerError
from cumulus_ecs_task.stepfunctions.client import ActivityClient
from cumulus_ecs_task.utils.scheduler import ScheduledTask, Scheduler
from cumulus_ecs_task.utils.threads import FuncThread, start_worker_thread

LOG = logging.getLogger(__name__)


class HeartbeatHandle:
    """A running heartbeat for one task token. Only the ``HeartbeatTicker`` that created it may stop it."""

    def __init__(self, token: str, interval: float, scheduler: Scheduler, task: ScheduledTask, thread: FuncThread):
        self.token = token
        self.interval = interval
        self.ticks = 0
        self._scheduler = scheduler
        self._task = task
        self._thread = thread
        self._stopped = False

    @property
    def stopped(self) -> bool:
        return self._stopped


class HeartbeatTicker:
    """
    Sends ``SendTaskHeartbeat`` for a task token at a fixed rate while the task is running.

    Every heartbeat runs on a dedicated scheduler thread. Stopping a heartbeat cancels the schedule, terminates the
    scheduler, and joins its thread, so a heartbeat that is in flight when ``stop`` is called has completed (or
    failed) by the time ``stop`` returns, and none is sent afterwards.
    """

    def __init__(self, client: ActivityClient):
        self.client = client

    def start(self, token: str, interval_millis: Optional[int]) -> Optional[HeartbeatHandle]:
        """
        Starts sending heartbeats for the given token, the first one after one interval has passed.

        :param token: the task token
        :param interval_millis: the interval between heartbeats in milliseconds, no ticker is started if unset or 0
        :return: the handle to pass to ``stop``, or None if no ticker was started
        """
        if not interval_millis:
            return None

        interval = interval_millis / 1000
        scheduler = Scheduler()
        handle = HeartbeatHandle(token, interval, scheduler, None, None)
        handle._task = scheduler.schedule(
            self._tick,
            period=interval,
            start=time.time() + interval,
            on_error=self._on_error,
            args=(handle,),
        )
        handle._thread = start_worker_thread(
            lambda _: scheduler.run(), name=f"heartbeat-{token[-8:]}"
        )
        LOG.debug("Started heartbeat every %s ms", interval_millis)
        return handle

    def stop(self, handle: Optional[HeartbeatHandle]) -> None:
        """Stops the given heartbeat and waits for an in-flight heartbeat to complete. Safe to call repeatedly."""
        if handle is None or handle.stopped:
            return
        handle._stopped = True
        handle._task.cancel()
        handle._scheduler.close()
        handle._thread.join()
        LOG.debug("Stopped heartbeat after %s ticks", handle.ticks)

    @contextlib.contextmanager
    def running(self, token: str, interval_millis: Optional[int]) -> Iterator[Optional[HeartbeatHandle]]:
        """Runs a heartbeat for the duration of the ``with`` block, stopping it on every exit path."""
        handle = self.start(token, interval_millis)
        try:
            yield handle
        finally:
            self.stop(handle)

    def _tick(self, handle: HeartbeatHandle):
        handle.ticks += 1
        try:
            self.client.send_heartbeat(handle.token)
            LOG.info("sending heartbeat, confirming %s is still in progress", handle.token)
        except TaskRunnerError as e:
            LOG.error("error sending heartbeat: %s", e)

    @staticmethod
    def _on_error(error: Exception):
        LOG.exception("Unexpected error in heartbeat: %s", error)
