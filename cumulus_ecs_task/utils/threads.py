import concurrent.futures
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Iterable, List, Optional, TypeVar

LOG = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


class FuncThread(threading.Thread):
    """Helper class to run a Python function in a named background thread."""

    def __init__(self, func, params=None, quiet=False, name: Optional[str] = None):
        threading.Thread.__init__(self, name=name)
        self.daemon = True
        self.params = params
        self.func = func
        self.quiet = quiet
        self.result_future = Future()

    def run(self):
        result = None
        try:
            result = self.func(self.params)
        except Exception as e:
            self.result_future.set_exception(e)
            if not self.quiet:
                LOG.exception("Thread %s running %s failed: %s", self.name, self.func, e)
        finally:
            try:
                self.result_future.set_result(result)
            except concurrent.futures.InvalidStateError:
                # the exception has already been set
                pass


def start_worker_thread(method, params=None, name: Optional[str] = None, quiet=False) -> FuncThread:
    """Starts the given method in a daemon thread. The method receives ``params`` as its only argument."""
    thread = FuncThread(method, params, quiet=quiet, name=name)
    thread.start()
    return thread


def parallelize(func: Callable[[T], R], items: Iterable[T], size: int = None) -> List[R]:
    """
    Calls ``func`` for each of the given items using a pool of at most ``size`` threads, and waits for all calls
    to complete. Results are returned in the order of the items. The first error raised by any call is re-raised
    after all calls have completed.
    """
    items = list(items)
    if not size:
        size = len(items)
    if size <= 0:
        return []

    with ThreadPoolExecutor(max_workers=size, thread_name_prefix="parallel") as executor:
        futures = [executor.submit(func, item) for item in items]
        concurrent.futures.wait(futures)
    return [future.result() for future in futures]
