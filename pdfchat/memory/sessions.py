# pdfchat/memory/sessions.py
"""
In-memory session store with idle expiry.

One Session per uploaded document: its chunks, its vector index and
its citation pages, positionally aligned. The store is owned by the
application and handed to request handlers; it is not a module global.

Every public operation runs under one lock and never awaits while
holding it, so a sweep and a lookup or touch on the same key cannot
interleave. The sweep re-reads last_accessed under the lock, so a touch
that lands first always wins.
"""

import asyncio
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from pdfchat.errors import InvariantViolation
from pdfchat.memory.chunker import Chunk
from pdfchat.memory.index import VectorIndex

logger = logging.getLogger(__name__)


@dataclass
class Session:

    session_id: str
    chunks: Tuple[Chunk, ...]
    index: VectorIndex
    citations: Tuple[int, ...]
    created_at: float
    last_accessed: float
    filename: Optional[str] = None
    metadata: Dict = field(default_factory=dict)

    @property
    def page_count(self) -> int:
        return max(self.citations, default=0)


def generate_session_id() -> str:
    # uuid4 draws from os.urandom
    return f"sess_{uuid.uuid4().hex}"


class SessionStore:

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        id_factory: Callable[[], str] = generate_session_id,
    ):

        self._clock = clock
        self._id_factory = id_factory
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    # ============================================================
    # CREATE
    # ============================================================

    def create(
        self,
        chunks: Sequence[Chunk],
        index: VectorIndex,
        citations: Sequence[int],
        filename: Optional[str] = None,
    ) -> str:
        """Register a fully built session and return its fresh id."""

        if not (len(chunks) == len(index) == len(citations)):
            logger.error(
                "Session rejected: misaligned structures",
                extra={
                    "chunks": len(chunks),
                    "vectors": len(index),
                    "citations": len(citations),
                },
            )
            raise InvariantViolation(
                f"chunks ({len(chunks)}), vectors ({len(index)}) and "
                f"citations ({len(citations)}) must have equal length"
            )

        with self._lock:

            session_id = self._id_factory()

            while session_id in self._sessions:
                logger.error("Session id collision", extra={"session_id": session_id})
                session_id = self._id_factory()

            now = self._clock()

            self._sessions[session_id] = Session(
                session_id=session_id,
                chunks=tuple(chunks),
                index=index,
                citations=tuple(citations),
                created_at=now,
                last_accessed=now,
                filename=filename,
            )

        logger.info(
            "Session created",
            extra={"session_id": session_id, "chunks": len(chunks)},
        )

        return session_id

    # ============================================================
    # LOOKUP / TOUCH / EVICT
    # ============================================================

    def get(self, session_id: str) -> Optional[Session]:

        with self._lock:
            return self._sessions.get(session_id)

    def touch(self, session_id: str) -> bool:
        """Mark a session as used now. False if it is already gone."""

        with self._lock:

            session = self._sessions.get(session_id)

            if session is None:
                return False

            session.last_accessed = self._clock()

            return True

    def delete(self, session_id: str) -> bool:

        with self._lock:
            removed = self._sessions.pop(session_id, None)

        if removed is not None:
            logger.info("Session evicted", extra={"session_id": session_id})

        return removed is not None

    # ============================================================
    # EXPIRY
    # ============================================================

    def sweep_expired(self, now: float, timeout: float) -> int:
        """
        Remove every session idle for longer than timeout.

        Returns the number of sessions removed.
        """

        removed: List[str] = []

        with self._lock:

            for session_id in list(self._sessions):

                session = self._sessions[session_id]

                if now - session.last_accessed > timeout:
                    del self._sessions[session_id]
                    removed.append(session_id)

        if removed:
            logger.info(
                "Expired sessions removed",
                extra={"removed": len(removed), "timeout_seconds": timeout},
            )

        return len(removed)

    def clear(self) -> None:

        with self._lock:
            self._sessions.clear()

    def __len__(self) -> int:

        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:

        with self._lock:
            return session_id in self._sessions

    @property
    def clock(self) -> Callable[[], float]:
        return self._clock


class SessionSweeper:
    """
    Periodic background task that expires idle sessions.

    Runs independently of request traffic. A failing sweep is logged and
    the loop keeps going.
    """

    def __init__(
        self,
        store: SessionStore,
        interval_seconds: float,
        timeout_seconds: float,
        on_sweep: Optional[Callable[[int], None]] = None,
    ):

        self._store = store
        self._interval = interval_seconds
        self._timeout = timeout_seconds
        self._on_sweep = on_sweep
        self._task: Optional[asyncio.Task] = None

    def start(self) -> None:

        if self._task is not None and not self._task.done():
            return

        self._task = asyncio.get_running_loop().create_task(self._run())

        logger.info(
            "Session sweeper started",
            extra={
                "interval_seconds": self._interval,
                "timeout_seconds": self._timeout,
            },
        )

    async def stop(self) -> None:

        task, self._task = self._task, None

        if task is None:
            return

        task.cancel()

        try:
            await task
        except asyncio.CancelledError:
            pass

        logger.info("Session sweeper stopped")

    def sweep_once(self) -> int:

        removed = self._store.sweep_expired(self._store.clock(), self._timeout)

        if self._on_sweep is not None and removed:
            self._on_sweep(removed)

        return removed

    async def _run(self) -> None:

        while True:

            await asyncio.sleep(self._interval)

            try:
                self.sweep_once()
            except Exception as e:
                logger.error(
                    "Session sweep failed",
                    extra={"error": str(e)},
                    exc_info=True,
                )

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
