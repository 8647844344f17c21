# dispatch.py
# Hands work from router threads to the thread that owns a RoutingSession.

import queue
from typing import Callable

Task = Callable[[], None]


def run_inline(task: Task) -> None:
    """Dispatcher for synchronous routers: run the task right away."""
    task()


class OwnerThreadQueue:
    """
    Thread-safe task queue drained by the owner thread.

    Usage:
        tasks = OwnerThreadQueue()
        session = RoutingSession(router, dispatcher=tasks.post)

        # Owner thread, e.g. once per GPS update:
        tasks.run_pending()
    """

    def __init__(self) -> None:
        self._queue: "queue.Queue[Task]" = queue.Queue()

    def post(self, task: Task) -> None:
        """Enqueue a task. Safe from any thread."""
        self._queue.put(task)

    def run_pending(self) -> int:
        """Run every queued task on the calling thread. Returns how many ran."""
        count = 0
        while True:
            try:
                task = self._queue.get_nowait()
            except queue.Empty:
                return count
            try:
                task()
            finally:
                self._queue.task_done()
            count += 1

    def wait_and_run(self, timeout: float) -> bool:
        """Block up to `timeout` seconds for one task and run it."""
        try:
            task = self._queue.get(timeout=timeout)
        except queue.Empty:
            return False
        try:
            task()
        finally:
            self._queue.task_done()
        self.run_pending()
        return True

    def __len__(self) -> int:
        return self._queue.qsize()
