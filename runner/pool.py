"""Runs competing quiz sessions until the first one passes."""
import asyncio
import contextlib
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Optional

from client import RateLimitedClient
from config import MAX_PAGES, SUCCESS_TITLE, TEXT_PLACEHOLDER
from worker import SessionStatus, SessionWorker, WorkerOutcome

logger = logging.getLogger(__name__)


@dataclass
class PoolResult:
    winner: Optional[int]
    outcomes: list[WorkerOutcome] = field(default_factory=list)
    elapsed: float = 0.0


class WorkerPool:
    def __init__(
        self,
        client: RateLimitedClient,
        workers: Optional[int] = None,
        success_title: str = SUCCESS_TITLE,
        placeholder: str = TEXT_PLACEHOLDER,
        max_pages: int = MAX_PAGES,
    ):
        self.client = client
        self.size = workers if workers is not None else (os.cpu_count() or 1)
        if self.size < 1:
            raise ValueError(f"need at least one worker, got {self.size}")
        self.success_title = success_title
        self.placeholder = placeholder
        self.max_pages = max_pages
        self.workers: list[SessionWorker] = []

    async def run(self) -> PoolResult:
        """Start every worker and wait for the first success report.

        Once any worker passes, the shared limiter is closed: requests already
        on the wire finish, nothing new is sent, and the remaining workers
        wind down on their own.
        """
        start = time.time()
        completion: asyncio.Queue = asyncio.Queue()
        self.workers = [
            SessionWorker(
                i,
                self.client,
                completion,
                success_title=self.success_title,
                placeholder=self.placeholder,
                max_pages=self.max_pages,
            )
            for i in range(self.size)
        ]
        logger.info("Starting %d workers against %s", self.size, self.client.base_url)
        tasks = [
            asyncio.create_task(w.run(), name=f"quiz-worker-{w.worker_id}")
            for w in self.workers
        ]
        all_done = asyncio.gather(*tasks, return_exceptions=True)
        first = asyncio.create_task(completion.get())
        try:
            done, _ = await asyncio.wait({first, all_done}, return_when=asyncio.FIRST_COMPLETED)
            if first in done:
                winner = first.result()
            else:
                first.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await first
                winner = None if completion.empty() else completion.get_nowait()

            if winner is not None:
                logger.info("Worker %d passed the quiz, stopping the pool", winner)
            else:
                logger.warning("All %d workers stopped without passing", self.size)
            self.client.limiter.close()
            results = await all_done
        finally:
            self.client.limiter.close()
        outcomes = [
            self._crashed(w, r) if isinstance(r, BaseException) else r
            for w, r in zip(self.workers, results)
        ]
        return PoolResult(winner=winner, outcomes=outcomes, elapsed=time.time() - start)

    def _crashed(self, worker: SessionWorker, error: BaseException) -> WorkerOutcome:
        logger.error("Worker %d crashed: %r", worker.worker_id, error, exc_info=error)
        worker.state.status = SessionStatus.FAILED
        worker.state.error = repr(error)
        return worker.outcome()
