"""Session clock and per-question clock driven by a repeating tick."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import logging
import math
from threading import Event, Lock, Thread
import time
from typing import Protocol

from practice_app.constants.session_constants import LOW_TIME_THRESHOLD_SECONDS, TICK_INTERVAL_MS
from practice_app.core.models import SessionConfig, SessionMode, TimerSnapshot
from practice_app.core.time_format import format_clock

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class Scheduler(Protocol):
    """Repeating timer primitive that invokes ``callback`` every ``interval_ms``."""

    def start(self, interval_ms: int, callback: Callable[[], None]) -> None: ...

    def stop(self) -> None: ...

    def is_active(self) -> bool: ...


class ThreadingScheduler:
    """Scheduler backed by a daemon thread, for headless use."""

    def __init__(self, name: str = "PracticeTimerTick") -> None:
        self._name = name
        self._stop_event = Event()
        self._thread: Thread | None = None

    def start(self, interval_ms: int, callback: Callable[[], None]) -> None:
        self.stop()
        stop_event = Event()
        self._stop_event = stop_event
        interval = interval_ms / 1000.0

        def run() -> None:
            while not stop_event.wait(interval):
                try:
                    callback()
                except Exception:
                    logger.exception("Timer tick callback failed")

        self._thread = Thread(target=run, name=self._name, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        # Not joined: a tick in progress may be waiting on a lock held by the caller.
        self._stop_event.set()
        self._thread = None

    def is_active(self) -> bool:
        return self._thread is not None and not self._stop_event.is_set()


@dataclass(frozen=True, slots=True)
class TimerView:
    """Read-only display values for the presentation layer."""

    main_display: str
    question_display: str
    main_elapsed_ms: int
    question_elapsed_ms: int
    remaining_ms: int | None
    is_low_time: bool
    is_paused: bool
    has_timed_out: bool


TickListener = Callable[[TimerView], None]


class TimerEngine:
    """Tracks elapsed session time and time spent on the active question.

    Elapsed values are always recomputed from clock timestamps, never summed from
    tick counts, so a skipped or delayed tick cannot introduce drift. Both clocks
    share one pause state.
    """

    def __init__(
        self,
        config: SessionConfig,
        scheduler: Scheduler | None = None,
        clock: Clock = monotonic_ms,
        tick_interval_ms: int = TICK_INTERVAL_MS,
    ) -> None:
        self._config = config
        self._limit_ms = config.time_limit_ms
        self._scheduler = scheduler or ThreadingScheduler()
        self._clock = clock
        self._tick_interval_ms = tick_interval_ms
        self._lock = Lock()

        self._started: bool = False
        self._paused: bool = False
        self._main_accumulated_ms: float = 0.0
        self._question_times: dict[int, float] = {}
        self._active_index: int = -1
        self._segment_started_at: float = 0.0
        self._question_segment_started_at: float = 0.0

        self._halted: bool = False
        self._time_up_fired: bool = False
        self._first_frame_pending: bool = True
        self._on_time_up: Callable[[], None] | None = None
        self._tick_listeners: list[TickListener] = []

    # --- Wiring ---

    def set_on_time_up(self, callback: Callable[[], None] | None) -> None:
        self._on_time_up = callback

    def add_tick_listener(self, listener: TickListener) -> None:
        self._tick_listeners.append(listener)

    @property
    def mode(self) -> SessionMode:
        return self._config.mode

    # --- Lifecycle ---

    def start(self, index: int) -> None:
        """Begin accruing time for the session and for question ``index``."""
        with self._lock:
            if self._started:
                return
            now = self._clock()
            self._started = True
            self._active_index = index
            self._segment_started_at = now
            self._question_segment_started_at = now
            self._first_frame_pending = True
        self._scheduler.start(self._tick_interval_ms, self.tick)
        logger.debug("Timers started on question %d", index + 1)

    def restore(self, main_elapsed_ms: int, question_elapsed_ms: dict[int, int]) -> None:
        """Seed both clocks from a saved snapshot; time continues from this baseline."""
        with self._lock:
            now = self._clock()
            self._main_accumulated_ms = float(main_elapsed_ms)
            self._question_times = {int(k): float(v) for k, v in question_elapsed_ms.items()}
            self._segment_started_at = now
            self._question_segment_started_at = now
            self._first_frame_pending = True
            if self._limit_ms is not None and main_elapsed_ms >= self._limit_ms:
                logger.info("Restored timer is already past its time limit")
        logger.info(
            "Session timer restored with %ds elapsed", int(main_elapsed_ms // 1000)
        )

    def stop(self) -> None:
        """Freeze both clocks and stop ticking for good."""
        with self._lock:
            self._freeze(self._clock())
            self._halted = True
        self._scheduler.stop()

    def switch_active_question(self, new_index: int) -> None:
        with self._lock:
            if new_index == self._active_index:
                return
            now = self._clock()
            if self._is_running() and self._active_index >= 0:
                self._question_times[self._active_index] = self._live_question_ms(now)
            self._active_index = new_index
            self._question_segment_started_at = now
        logger.debug("Question timer switched to question %d", new_index + 1)

    def pause(self) -> bool:
        """Freeze both clocks. Returns False if the timers were already paused."""
        with self._lock:
            if self._paused:
                return False
            self._freeze(self._clock())
            self._paused = True
        logger.info("Session paused")
        return True

    def resume(self) -> bool:
        """Unfreeze both clocks. Returns False if they were not paused."""
        with self._lock:
            if not self._paused or self._halted:
                return False
            now = self._clock()
            self._paused = False
            self._segment_started_at = now
            self._question_segment_started_at = now
        logger.info("Session resumed")
        return True

    def toggle_pause(self) -> bool:
        """Flip the pause state and return the new ``is_paused`` value."""
        if self.is_paused:
            self.resume()
        else:
            self.pause()
        return self.is_paused

    # --- Accessors ---

    @property
    def is_paused(self) -> bool:
        return self._paused

    @property
    def has_timed_out(self) -> bool:
        return self._time_up_fired

    @property
    def active_index(self) -> int:
        return self._active_index

    def total_session_time(self) -> int:
        """Elapsed session time in milliseconds, excluding paused periods."""
        with self._lock:
            return int(self._live_main_ms(self._clock()))

    def question_time_map(self) -> dict[int, int]:
        """Accumulated milliseconds per question index, including the active one."""
        with self._lock:
            now = self._clock()
            times = {index: int(ms) for index, ms in self._question_times.items()}
            if self._active_index >= 0 and self._started:
                times[self._active_index] = int(self._live_question_ms(now))
            return times

    def question_time(self, index: int) -> int:
        return self.question_time_map().get(index, 0)

    def snapshot(self) -> TimerSnapshot:
        with self._lock:
            now = self._clock()
            times = {index: int(ms) for index, ms in self._question_times.items()}
            if self._active_index >= 0 and self._started:
                times[self._active_index] = int(self._live_question_ms(now))
            return TimerSnapshot(
                main_elapsed_ms=int(self._live_main_ms(now)),
                question_elapsed_ms=times,
            )

    def remaining_ms(self) -> int | None:
        if self._limit_ms is None:
            return None
        return max(0, self._limit_ms - self.total_session_time())

    def main_display(self) -> str:
        """Main clock text. Countdowns ceil the first frame so 30:00 never shows 29:59."""
        with self._lock:
            elapsed = self._live_main_ms(self._clock())
            first_frame = self._first_frame_pending
            self._first_frame_pending = False
        if self._limit_ms is None:
            return format_clock(math.floor(elapsed / 1000))
        remaining = max(0.0, self._limit_ms - elapsed)
        seconds = math.ceil(remaining / 1000) if first_frame else math.floor(remaining / 1000)
        return format_clock(seconds)

    def question_display(self) -> str:
        return format_clock(self.question_time(self._active_index) // 1000)

    def is_low_time(self) -> bool:
        remaining = self.remaining_ms()
        if remaining is None:
            return False
        return math.ceil(remaining / 1000) < LOW_TIME_THRESHOLD_SECONDS

    def view(self) -> TimerView:
        main_display = self.main_display()
        return TimerView(
            main_display=main_display,
            question_display=self.question_display(),
            main_elapsed_ms=self.total_session_time(),
            question_elapsed_ms=self.question_time(self._active_index),
            remaining_ms=self.remaining_ms(),
            is_low_time=self.is_low_time(),
            is_paused=self._paused,
            has_timed_out=self._time_up_fired,
        )

    # --- Ticking ---

    def tick(self) -> None:
        """Recompute display values and fire ``on_time_up`` when a countdown expires."""
        if not self._is_running():
            return

        fire = False
        with self._lock:
            if self._limit_ms is not None and not self._time_up_fired:
                if self._limit_ms - self._live_main_ms(self._clock()) <= 0:
                    self._time_up_fired = True
                    self._freeze(self._clock())
                    self._halted = True
                    fire = True

        if fire:
            logger.info("Time limit reached")
            self._scheduler.stop()
            if self._on_time_up is not None:
                self._on_time_up()

        if self._tick_listeners:
            current = self.view()
            for listener in list(self._tick_listeners):
                listener(current)

    # --- Internals (call with the lock held) ---

    def _is_running(self) -> bool:
        return self._started and not self._paused and not self._halted

    def _live_main_ms(self, now: float) -> float:
        if not self._is_running():
            return self._main_accumulated_ms
        return self._main_accumulated_ms + (now - self._segment_started_at)

    def _live_question_ms(self, now: float) -> float:
        base = self._question_times.get(self._active_index, 0.0)
        if not self._is_running():
            return base
        return base + (now - self._question_segment_started_at)

    def _freeze(self, now: float) -> None:
        if not self._is_running():
            return
        self._main_accumulated_ms = self._live_main_ms(now)
        if self._active_index >= 0:
            self._question_times[self._active_index] = self._live_question_ms(now)
        self._segment_started_at = now
        self._question_segment_started_at = now
