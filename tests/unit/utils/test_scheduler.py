import threading
import time
from typing import Tuple

import pytest

from cumulus_ecs_task.utils.scheduler import Scheduler
from cumulus_ecs_task.utils.sync import poll_condition


class DummyTask:
    def __init__(self, fn=None) -> None:
        super().__init__()
        self.i = 0
        self.invocations = list()
        self.fn = fn

    def __call__(self, *args, **kwargs):
        self.invoke(*args, **kwargs)

    def invoke(self, *args, **kwargs):
        self.i += 1
        self.invocations.append((self.i, time.time(), args, kwargs))

        if self.fn:
            self.fn(*args, **kwargs)


class TestScheduler:
    @staticmethod
    def create_and_start() -> Tuple[Scheduler, threading.Thread]:
        scheduler = Scheduler()
        thread = threading.Thread(target=scheduler.run)
        thread.start()

        return scheduler, thread

    def test_single_scheduled_run(self):
        scheduler, thread = self.create_and_start()

        task = DummyTask()
        invocation_time = time.time() + 0.2

        scheduler.schedule(task, start=invocation_time)

        assert poll_condition(lambda: len(task.invocations) >= 1, timeout=5)

        scheduler.close()
        thread.join(5)

        assert len(task.invocations) == 1
        assert task.invocations[0][1] == pytest.approx(invocation_time, 0.1)

    def test_periodic_run_fixed_rate(self):
        task = DummyTask()
        scheduler, thread = self.create_and_start()

        scheduler.schedule(task, period=0.1)
        scheduler.schedule(scheduler.close, start=time.time() + 0.55)
        thread.join(5)

        assert len(task.invocations) == 6
        first = task.invocations[0][1]
        assert first + 0.5 == pytest.approx(task.invocations[5][1], abs=0.05)

    def test_periodic_run_with_longer_task(self):
        # deadlines do not drift when a run takes longer than the period
        task = DummyTask(fn=lambda: time.sleep(0.3))

        scheduler, thread = self.create_and_start()

        scheduler.schedule(task, period=0.2)
        scheduler.schedule(scheduler.close, start=time.time() + 0.5)

        thread.join(5)

        first = task.invocations[0][1]
        assert first + 0.3 == pytest.approx(task.invocations[1][1], abs=0.1)

    def test_same_deadline(self):
        task1 = DummyTask()
        task2 = DummyTask()
        scheduler, thread = self.create_and_start()

        start = time.time() + 0.1
        scheduler.schedule(task1, start=start)
        scheduler.schedule(task2, start=start)

        assert poll_condition(lambda: task1.invocations and task2.invocations, timeout=5)
        scheduler.close()
        thread.join(5)

    def test_cancel_task(self):
        task1 = DummyTask()
        task2 = DummyTask()
        scheduler, thread = self.create_and_start()

        scheduler.schedule(task2.invoke, period=0.5)
        stask = scheduler.schedule(task1.invoke, period=0.5)

        scheduler.schedule(stask.cancel, start=time.time() + 0.75)
        scheduler.schedule(scheduler.close, start=time.time() + 1.5)

        thread.join(5)

        assert len(task1.invocations) == 2
        assert len(task2.invocations) == 4

    def test_close_interrupts_waiting(self):
        task = DummyTask()
        scheduler, thread = self.create_and_start()

        scheduler.schedule(task, start=time.time() + 10)
        scheduler.close()
        thread.join(5)

        assert not thread.is_alive()
        assert not task.invocations

    def test_error_handler(self):
        scheduler, thread = self.create_and_start()
        errors = []

        def invoke(n):
            raise ValueError("error %d" % n)

        scheduler.schedule(invoke, on_error=errors.append, args=(1,))
        scheduler.schedule(invoke, on_error=errors.append, args=(2,))
        scheduler.schedule(scheduler.close, start=time.time() + 0.2)

        thread.join(5)

        assert len(errors) == 2
        assert sorted(str(e) for e in errors) == ["error 1", "error 2"]

    def test_periodic_task_survives_errors(self):
        calls = []

        def fail():
            calls.append(time.time())
            raise ValueError("failed")

        scheduler, thread = self.create_and_start()
        scheduler.schedule(fail, period=0.05, on_error=lambda e: None)

        assert poll_condition(lambda: len(calls) >= 3, timeout=5)
        scheduler.close()
        thread.join(5)
