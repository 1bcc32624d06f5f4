"""
=============================================================================
CONNECTION WORKERS
=============================================================================

Every accepted connection gets its own thread. The accept loop never
reads or writes a client socket itself; it hands the socket off and goes
straight back to accept().

    ┌──────────────┐  accept()  ┌────────────────────┐
    │ Accept loop  │ ─────────► │ ConnectionWorker 1 │  keep-alive loop
    │ (main thread)│            └────────────────────┘
    │              │  accept()  ┌────────────────────┐
    │              │ ─────────► │ ConnectionWorker 2 │  keep-alive loop
    │              │            └────────────────────┘
    │              │  accept()  ┌────────────────────┐
    │              │ ─────────► │ ConnectionWorker 3 │  keep-alive loop
    └──────────────┘            └────────────────────┘

=============================================================================
WHY NOT A FIXED POOL?
=============================================================================

A pooled worker is busy for as long as its connection stays open. With
keep-alive, an idle client holds a pool worker indefinitely, and once
every worker is held the next client waits in the queue behind it:

    pool of 4, 4 idle keep-alive clients  →  client 5 never gets served

One thread per connection removes that head-of-line blocking. There is no
connection cap: the number of live threads tracks the number of open
connections.

=============================================================================
FAILURE ISOLATION
=============================================================================

An exception escaping a connection handler is logged and ends THAT
worker only. The accept loop and every other connection keep running.

=============================================================================
"""

import threading
import time
import logging
from enum import Enum
from typing import Any, Callable, Dict, List


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    """Connection worker states."""
    RUNNING = "running"
    FINISHED = "finished"
    FAILED = "failed"


class ConnectionWorker(threading.Thread):
    """
    Thread that serves a single connection until it closes.

        worker = ConnectionWorker(handle_connection, (sock, addr), worker_id=7)
        worker.start()
    """

    def __init__(
        self,
        target: Callable[..., Any],
        args: tuple = (),
        worker_id: int = 0,
        on_exit: Callable[["ConnectionWorker"], None] = None,
    ):
        """
        Args:
            target: Connection handler to run.
            args: Positional arguments for the handler.
            worker_id: Sequence number, used in the thread name.
            on_exit: Called from the worker thread after the handler returns.
        """
        # daemon=True: an open keep-alive connection never keeps the
        # process alive after the accept loop has exited
        super().__init__(name=f"Connection-{worker_id}", daemon=True)

        self._target_func = target
        self._target_args = args
        self._on_exit = on_exit

        self.worker_id = worker_id
        self.state = WorkerState.RUNNING
        self.started_at = 0.0
        self.elapsed = 0.0

    def run(self):
        self.started_at = time.time()
        logger.debug(f"Worker {self.worker_id} started")

        try:
            self._target_func(*self._target_args)
            self.state = WorkerState.FINISHED
        except Exception as e:
            self.state = WorkerState.FAILED
            logger.exception(f"Worker {self.worker_id} failed: {e}")
        finally:
            self.elapsed = time.time() - self.started_at
            logger.debug(
                f"Worker {self.worker_id} exited after {self.elapsed:.3f}s"
            )
            if self._on_exit is not None:
                self._on_exit(self)


class WorkerGroup:
    """
    Spawns and tracks one ConnectionWorker per accepted connection.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      WorkerGroup Usage                              │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                     │
    │   workers = WorkerGroup()                                           │
    │                                                                     │
    │   # From the accept loop                                            │
    │   workers.spawn(handle_connection, args=(sock, addr))               │
    │                                                                     │
    │   # Monitoring                                                      │
    │   workers.active            # live connection threads               │
    │   workers.stats             # {"active": 3, "spawned": 41, ...}     │
    │                                                                     │
    │   # Tests: wait for in-flight connections                           │
    │   workers.join(timeout=2.0)                                         │
    │                                                                     │
    └─────────────────────────────────────────────────────────────────────┘
    """

    def __init__(self):
        self._workers: Dict[int, ConnectionWorker] = {}
        self._lock = threading.Lock()  # protects _workers and the counters
        self._next_worker_id = 0
        self._completed = 0
        self._failed = 0

    def spawn(self, func: Callable[..., Any], args: tuple = ()) -> ConnectionWorker:
        """
        Start a new worker thread running func(*args).

        Returns:
            The started worker.
        """
        with self._lock:
            worker = ConnectionWorker(
                target=func,
                args=args,
                worker_id=self._next_worker_id,
                on_exit=self._worker_exited,
            )
            self._next_worker_id += 1
            self._workers[worker.worker_id] = worker

        worker.start()
        return worker

    def _worker_exited(self, worker: ConnectionWorker):
        with self._lock:
            self._workers.pop(worker.worker_id, None)
            if worker.state == WorkerState.FAILED:
                self._failed += 1
            else:
                self._completed += 1

    def join(self, timeout: float = None):
        """
        Wait for the currently running workers to exit.

        Args:
            timeout: Per-worker wait in seconds. None waits indefinitely.
        """
        for worker in self._snapshot():
            worker.join(timeout=timeout)

    def _snapshot(self) -> List[ConnectionWorker]:
        with self._lock:
            return list(self._workers.values())

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def active(self) -> int:
        """Number of connection threads still running."""
        with self._lock:
            return len(self._workers)

    @property
    def spawned(self) -> int:
        """Total workers started since creation."""
        with self._lock:
            return self._next_worker_id

    @property
    def stats(self) -> dict:
        with self._lock:
            return {
                "active": len(self._workers),
                "spawned": self._next_worker_id,
                "completed": self._completed,
                "failed": self._failed,
            }
