import itertools
import queue
import threading
import time
from typing import Any, Callable, Mapping, Optional, Tuple, Union


class ScheduledTask:
    """
    Internal representation of a task (a callable) and its scheduling parameters.
    """

    def __init__(
        self,
        task: Callable,
        period: Optional[float] = None,
        start: Optional[float] = None,
        on_error: Callable[[Exception], None] = None,
        args: Optional[Union[tuple, list]] = None,
        kwargs: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__()
        self.task = task
        self.period = period
        self.start = start
        self.on_error = on_error
        self.args = args or tuple()
        self.kwargs = kwargs or dict()

        self.deadline = None
        self._cancelled = False

    @property
    def is_periodic(self) -> bool:
        return self.period is not None

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    def set_next_deadline(self):
        """
        Updates the next deadline of this task based on the period. Deadlines advance at a fixed rate, independent
        of how long the task took to execute.
        """
        if not self.deadline:
            raise ValueError("Deadline was not initialized")

        self.deadline = self.deadline + self.period

    def cancel(self):
        self._cancelled = True

    def run(self):
        """
        Executes the task function. If the function raises an Exception, ``on_error`` is called (if set).
        """
        try:
            self.task(*self.args, **self.kwargs)
        except Exception as e:
            if self.on_error:
                self.on_error(e)


class Scheduler:
    """
    An event-loop based task scheduler that runs scheduled tasks synchronously inside its ``run`` loop. Since
    tasks run on the loop thread, a task is never executed after ``run`` has returned, which makes joining the
    loop thread a reliable way to wait for an in-flight execution.
    """

    POISON = (-1, -1, None)

    def __init__(self) -> None:
        super().__init__()
        self._queue = queue.PriorityQueue()
        self._condition = threading.Condition()
        # tie-breaker for tasks with equal deadlines, tasks themselves are not comparable
        self._sequence = itertools.count()
        # incremented on every change to the queue, guarded by the condition
        self._version = 0

    def schedule(
        self,
        func: Callable,
        period: Optional[float] = None,
        start: Optional[float] = None,
        on_error: Callable[[Exception], None] = None,
        args: Optional[Tuple] = None,
        kwargs: Optional[Mapping[str, Any]] = None,
    ) -> ScheduledTask:
        """
        Schedules a given task (function call).

        :param func: the task to schedule
        :param period: the period in which to run the task (in seconds). if not set, task will run once
        :param start: start time (epoch seconds), defaults to now
        :param on_error: error callback
        :param args: additional positional arguments to pass to the function
        :param kwargs: additional keyword arguments to pass to the function
        :return: a ScheduledTask instance
        """
        task = ScheduledTask(
            func,
            period=period,
            start=start,
            on_error=on_error,
            args=args,
            kwargs=kwargs,
        )
        task.deadline = max(task.start or 0, time.time())
        self._put(task)
        return task

    def _put(self, task: ScheduledTask) -> None:
        self._enqueue((task.deadline, next(self._sequence), task))

    def _enqueue(self, entry) -> None:
        with self._condition:
            self._queue.put(entry)
            self._version += 1
            self._condition.notify()

    def close(self) -> None:
        """
        Terminates the run loop.
        """
        self._enqueue(self.POISON)

    def run(self):
        q = self._queue
        cond = self._condition
        poison = self.POISON

        task: ScheduledTask
        while True:
            with cond:
                version = self._version
            entry = q.get()

            if entry == poison:
                break

            deadline, _, task = entry

            if task.is_cancelled:
                continue

            # wait until the task should be executed
            wait = max(0, deadline - time.time())
            if wait > 0:
                with cond:
                    interrupted = cond.wait_for(lambda: self._version != version, timeout=wait)
                if interrupted:
                    # something with a potentially earlier deadline (or the poison) has arrived while waiting
                    q.put(entry)
                    continue

            if not task.is_cancelled:
                task.run()

            if task.is_periodic and not task.is_cancelled:
                task.set_next_deadline()
                self._put(task)
