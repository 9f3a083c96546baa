"""
Watch view - the periodic tick driver for one open tutorial.

A WatchView resolves the tutorial and the signed-in identity, then runs
a background thread that records one tick every interval until it is
stopped, the identity goes away, or the identity changes.

Key behaviors:
- No tick fires before both tutorial and identity resolve
- Ticks within one view are strictly ordered (one thread, one lock)
- stop() cancels the timer and joins; an in-flight tick finishes
- Visibility is not tracked: a hidden tab keeps ticking
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from types import TracebackType

from recap.components.catalog import GetTutorialInput, TutorialOutput, run_get_tutorial
from recap.core.ports.store import DocumentStorePort

from .component import run_get_session, run_tick
from .models import DEFAULT_CONFIG, GetSessionInput, RecorderConfig, TickInput, TickOutput
from .ports import AuthPort, Identity, TimePort

logger = logging.getLogger(__name__)

TickCallback = Callable[[TickOutput], None]


class WatchViewError(Exception):
    """Raised when a watch view cannot start recording."""

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message


class WatchView:
    """
    Records watch time for one (student, tutorial) pair.

    Usage:
        with WatchView(store, auth, "tut-1") as view:
            ...  # ticks every config.interval_seconds
    """

    def __init__(
        self,
        store: DocumentStorePort,
        auth: AuthPort,
        tutorial_id: str,
        *,
        config: RecorderConfig = DEFAULT_CONFIG,
        time_port: TimePort | None = None,
        on_tick: TickCallback | None = None,
    ) -> None:
        self._store = store
        self._auth = auth
        self._tutorial_id = tutorial_id
        self._config = config
        self._time = time_port
        self._on_tick = on_tick

        self._stop_event = threading.Event()
        self._tick_lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._running = False

        self._identity: Identity | None = None
        self._tutorial: TutorialOutput | None = None
        self._minutes_watched = 0

    # --- Lifecycle ---

    def start(self) -> None:
        """
        Resolve the tutorial and identity, then start the timer.

        Raises:
            WatchViewError: tutorial missing, video link invalid, store
                unavailable, or nobody signed in
        """
        if self._running:
            return

        identity = self._auth.current_identity()
        if identity is None:
            raise WatchViewError("unauthenticated", "No signed-in user")

        tutorial = run_get_tutorial(GetTutorialInput(tutorial_id=self._tutorial_id), store=self._store)
        if not tutorial.success:
            error = tutorial.errors[0]
            raise WatchViewError(error.code, error.message)

        self._identity = identity
        self._tutorial = tutorial
        self._minutes_watched = self._load_existing_minutes(identity)

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._tick_loop,
            name=f"watch-{self._tutorial_id}",
            daemon=True,
        )
        self._running = True
        self._thread.start()
        logger.info(
            "Watch view started for tutorial %s (interval: %.1fs)",
            self._tutorial_id,
            self._config.interval_seconds,
        )

    def stop(self, timeout: float | None = None) -> None:
        """Cancel the timer. Waits for an in-flight tick to finish."""
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        if self._running:
            self._running = False
            logger.info("Watch view stopped for tutorial %s", self._tutorial_id)

    def __enter__(self) -> WatchView:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.stop()

    # --- State ---

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def minutes_watched(self) -> int:
        """Last total confirmed by the store (not advanced by failed ticks)."""
        return self._minutes_watched

    @property
    def tutorial(self) -> TutorialOutput | None:
        return self._tutorial

    @property
    def identity(self) -> Identity | None:
        return self._identity

    # --- Ticking ---

    def tick_now(self) -> TickOutput | None:
        """
        Record one tick immediately.

        Returns None without writing when the view has not started or the
        identity is no longer the one the view started with; in the latter
        case the view stops itself.
        """
        with self._tick_lock:
            if self._identity is None or self._stop_event.is_set():
                return None

            current = self._auth.current_identity()
            if current is None or current.id != self._identity.id:
                logger.info("Identity changed, stopping watch view for tutorial %s", self._tutorial_id)
                self._stop_event.set()
                self._running = False
                return None

            result = run_tick(
                TickInput(
                    user_id=current.id,
                    tutorial_id=self._tutorial_id,
                    user_email=current.email,
                    display_name=current.display_name,
                ),
                store=self._store,
                time_port=self._time,
                config=self._config,
            )
            if result.total_minutes_watched is not None:
                self._minutes_watched = result.total_minutes_watched

        if self._on_tick is not None:
            try:
                self._on_tick(result)
            except Exception:
                logger.exception("Tick callback failed")
        return result

    def _tick_loop(self) -> None:
        while not self._stop_event.wait(timeout=self._config.interval_seconds):
            try:
                self.tick_now()
            except Exception:
                # Next interval retries independently
                logger.exception("Tick failed for tutorial %s", self._tutorial_id)

    def _load_existing_minutes(self, identity: Identity) -> int:
        output = run_get_session(
            GetSessionInput(user_id=identity.id, tutorial_id=self._tutorial_id),
            store=self._store,
            time_port=self._time,
        )
        if output.session is None:
            return 0
        return output.session.total_minutes_watched
