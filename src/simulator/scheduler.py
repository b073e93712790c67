"""Publication scheduler: periodic synthesis and delivery of sample batches."""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Callable, Optional

from src.simulator.executors import PeriodicExecutor
from src.simulator.synthesis import SampleSynthesizer
from src.simulator.timebase import DeviceClock, build_clock, wall_clock_ms
from src.testbed.exceptions import ConsumerError, LifecycleError, SynthesisError
from src.testbed.schemas import GeneratorConfig, SampleBatch, SchedulerHandle

logger = logging.getLogger(__name__)

Consumer = Callable[[SampleBatch], None]


class PublicationScheduler:
    """Drives a :class:`SampleSynthesizer` on a caller-supplied periodic executor.

    States are ``Idle`` and ``Connected``.  :meth:`connect` starts a run whose
    first tick fires immediately and whose later ticks follow every
    ``ms_per_sample`` on the executor's fixed-rate grid.  Each tick takes the
    next tick index, stamps it with the device clock, synthesizes the batch
    and hands it to *consumer* before the next tick may start.

    The tick index and the device clock persist across disconnect/connect, so
    tick indices are strictly increasing for the whole life of the scheduler.
    Each index is counted exactly once: delivered, consumer error or synthesis
    error.

    Args:
        synthesizer: produces the batch for each tick.
        consumer: receives every batch; exceptions it raises are logged and
            counted, never propagated.
        time_source: wall clock in epoch ms, used by the realtime discipline
            and to pick a metronome origin when none is configured.
    """

    _run_ids = itertools.count(1)

    def __init__(
        self,
        synthesizer: SampleSynthesizer,
        consumer: Consumer,
        time_source: Callable[[], float] = wall_clock_ms,
    ) -> None:
        self.synthesizer = synthesizer
        self.consumer = consumer
        self.time_source = time_source

        self._state_lock = threading.Lock()
        # Serializes whole ticks; re-entrant so a consumer driving the
        # executor from inside its callback cannot deadlock itself.
        self._delivery_lock = threading.RLock()
        self._handle: Optional[SchedulerHandle] = None
        self._clock: Optional[DeviceClock] = None
        self._next_tick = 0
        self._delivered = 0
        self._consumer_errors = 0
        self._synthesis_errors = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def config(self) -> GeneratorConfig:
        return self.synthesizer.config

    @property
    def is_connected(self) -> bool:
        with self._state_lock:
            return self._handle is not None

    @property
    def next_tick_index(self) -> int:
        with self._state_lock:
            return self._next_tick

    @property
    def delivered_count(self) -> int:
        """Batches the consumer accepted without raising."""
        with self._state_lock:
            return self._delivered

    @property
    def consumer_error_count(self) -> int:
        with self._state_lock:
            return self._consumer_errors

    @property
    def synthesis_error_count(self) -> int:
        """Ticks whose timestamp or batch could not be produced."""
        with self._state_lock:
            return self._synthesis_errors

    def connect(self, executor: PeriodicExecutor) -> SchedulerHandle:
        """Start periodic publication on *executor*.

        Raises:
            LifecycleError: if already connected; the running schedule, the
                tick index and the clock are left untouched.
        """
        with self._state_lock:
            if self._handle is not None:
                raise LifecycleError(
                    f"Already connected (run {self._handle.run_id}); disconnect first"
                )
            if self._clock is None:
                self._clock = build_clock(self.config, self.time_source)
            handle = SchedulerHandle(run_id=next(self._run_ids), first_tick=self._next_tick)
            self._handle = handle

        try:
            task = executor.schedule_at_fixed_rate(
                lambda: self._tick(handle), 0, self.config.ms_per_sample
            )
        except Exception:
            with self._state_lock:
                if self._handle is handle:
                    self._handle = None
            raise

        with self._state_lock:
            handle.task = task
            still_current = self._handle is handle
        if not still_current:
            # disconnect() ran before the task existed
            task.cancel()
            return handle

        logger.info(
            "Connected run %d: %s every %dms from tick %d",
            handle.run_id, self.config.time_base.value, self.config.ms_per_sample, handle.first_tick,
        )
        return handle

    def disconnect(self) -> None:
        """Cancel future ticks.  A no-op when not connected.

        Safe to call from inside the consumer.  No tick starts after this
        returns; a tick already delivering may finish.
        """
        with self._state_lock:
            handle = self._handle
            self._handle = None
            next_tick = self._next_tick
        if handle is None:
            return
        handle.cancel()
        logger.info("Disconnected run %d at tick %d", handle.run_id, next_tick)

    # ------------------------------------------------------------------
    # Tick procedure
    # ------------------------------------------------------------------

    def _tick(self, handle: SchedulerHandle) -> None:
        with self._delivery_lock:
            with self._state_lock:
                if self._handle is not handle:
                    return
                tick_index = self._next_tick
                self._next_tick += 1
                clock = self._clock

            try:
                timestamp = clock.timestamp(tick_index)
                batch = self.synthesizer.synthesize(tick_index, timestamp)
            except Exception as exc:
                error = SynthesisError(tick_index, exc)
                with self._state_lock:
                    self._synthesis_errors += 1
                logger.error("%s", error, exc_info=exc)
                return

            logger.debug("Tick %d ts=%d samples=%d", tick_index, timestamp, batch.num_samples)

            try:
                self.consumer(batch)
            except Exception as exc:
                error = ConsumerError(tick_index, exc)
                with self._state_lock:
                    self._consumer_errors += 1
                logger.error("%s", error, exc_info=exc)
                return

            with self._state_lock:
                self._delivered += 1
