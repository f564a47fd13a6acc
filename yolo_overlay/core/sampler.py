"""
Fixed-cadence sampler with single-flight dispatch.

A timer thread calls tick() every interval. A tick either stops the sampler
(playback is no longer PLAYING), drops itself because a cycle is still in
flight, or hands a new cycle to the single worker thread and returns at once.
Ticks that find a cycle in flight are dropped, never queued.

Each start() opens a new generation. The token passed to the cycle callable
stays current until stop(); results carrying an old token must be discarded
by whoever applies them (see is_current()).
"""
import threading
from concurrent.futures import ThreadPoolExecutor
from enum import Enum

from yolo_overlay.core.types import PlaybackState
from yolo_overlay.utils.logger_setup import log_debug, log_warning


class TickOutcome(Enum):
    NOT_RUNNING = "not_running"
    STOPPED = "stopped"
    SKIPPED = "skipped"
    DISPATCHED = "dispatched"


class Sampler:
    def __init__(self, playback_state_fn, on_error=None, name="Sampler"):
        self._playback_state_fn = playback_state_fn
        self._on_error = on_error
        self.name = name
        self._lock = threading.Lock()
        self._running = False
        self._generation = 0
        self._token = None
        self._in_flight = False
        self._on_tick = None
        self._stop_event = None
        self._timer_thread = None
        self._executor = None
        self._retired_executors = []
        self._cycle_local = threading.local()
        self.ticks = 0
        self.dispatched = 0
        self.skipped = 0
        self.failures = 0

    @property
    def is_running(self):
        with self._lock:
            return self._running

    @property
    def in_flight(self):
        with self._lock:
            return self._in_flight

    def start(self, interval_ms, on_tick):
        if interval_ms <= 0:
            raise ValueError(f"Sampling interval must be positive, got {interval_ms}ms")
        with self._lock:
            if self._running:
                raise RuntimeError(f"{self.name} is already running")
            self._generation += 1
            self._token = self._generation
            self._running = True
            self._in_flight = False
            self._on_tick = on_tick
            self._stop_event = threading.Event()
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"{self.name}-cycle")
            self._timer_thread = threading.Thread(
                target=self._timer_loop,
                args=(self._stop_event, interval_ms / 1000.0),
                name=f"{self.name}-timer",
                daemon=True,
            )
            self._timer_thread.start()
            token = self._token
        log_debug(f"{self.name} started: interval={interval_ms}ms, generation={token}")
        return token

    def stop(self, wait=False):
        """Stop ticking and invalidate the current token.

        With wait=True, also block until cycles already running on the worker
        (this generation's or one that stopped itself earlier) have returned.
        Waiting is skipped when called from inside a cycle.
        """
        drain = wait and not getattr(self._cycle_local, "active", False)
        with self._lock:
            timer_thread = self._stop_locked("stop requested")
            retired = []
            if drain:
                retired, self._retired_executors = self._retired_executors, []
        if timer_thread is not None and timer_thread is not threading.current_thread():
            timer_thread.join()
        if drain:
            for executor in retired:
                executor.shutdown(wait=True)
            log_debug(f"{self.name} drained {len(retired)} worker(s).")

    def _stop_locked(self, reason):
        if not self._running:
            return None
        self._running = False
        # Invalidates the token held by any cycle still in flight
        self._generation += 1
        self._token = None
        self._stop_event.set()
        self._executor.shutdown(wait=False, cancel_futures=True)
        self._retired_executors.append(self._executor)
        timer_thread = self._timer_thread
        self._timer_thread = None
        self._executor = None
        self._on_tick = None
        log_debug(f"{self.name} stopped ({reason}). ticks={self.ticks} dispatched={self.dispatched} skipped={self.skipped}")
        return timer_thread

    def is_current(self, token):
        with self._lock:
            return self._running and token is not None and token == self._token

    def _timer_loop(self, stop_event, interval_s):
        while not stop_event.wait(interval_s):
            self.tick()

    def tick(self):
        with self._lock:
            if not self._running:
                return TickOutcome.NOT_RUNNING
            self.ticks += 1
            state = self._playback_state_fn()
            if state != PlaybackState.PLAYING:
                # Terminal: only an external start() resumes sampling
                self._stop_locked(f"playback is {state.value}")
                return TickOutcome.STOPPED
            if self._in_flight:
                self.skipped += 1
                log_debug(f"{self.name} tick {self.ticks} skipped: cycle in flight")
                return TickOutcome.SKIPPED
            self._in_flight = True
            self.dispatched += 1
            token = self._token
            self._executor.submit(self._run_cycle, self._on_tick, token)
        return TickOutcome.DISPATCHED

    def _run_cycle(self, on_tick, token):
        self._cycle_local.active = True
        try:
            on_tick(token)
        except Exception as e:
            self.failures += 1
            log_debug(f"{self.name} cycle failed: {type(e).__name__}: {e}")
            if self._on_error is not None:
                try:
                    self._on_error(e)
                except Exception as e_report:
                    log_warning(f"{self.name} error listener failed: {e_report}", exc_info=True)
        finally:
            self._cycle_local.active = False
            with self._lock:
                # A cycle from an earlier generation must not release the current one's slot
                if token == self._token:
                    self._in_flight = False
