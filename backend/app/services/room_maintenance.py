"""Periodic room maintenance: ordered lifecycle steps under one supervising loop."""

from __future__ import annotations

import argparse
import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, ContextManager, Sequence

from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.core.clock import utcnow
from app.database import get_db_session
from app.monitoring import metrics
from app.services import room_lifecycle

logger = logging.getLogger(__name__)

SessionScope = Callable[[], ContextManager[Session]]
StepFn = Callable[..., Any]


@dataclass(frozen=True, slots=True)
class MaintenanceStep:
    """A lifecycle step and the condition under which a sweep runs it."""

    name: str
    run: StepFn
    due: Callable[[datetime, Settings], bool] = lambda now, settings: True


def _health_due(now: datetime, settings: Settings) -> bool:
    return now.minute % settings.room_health_interval_minutes == 0


DEFAULT_STEPS: tuple[MaintenanceStep, ...] = (
    MaintenanceStep("expire_rooms", room_lifecycle.expire_rooms),
    MaintenanceStep("inactive_participants", room_lifecycle.handle_inactive_participants),
    MaintenanceStep("waiting_rooms", room_lifecycle.ensure_waiting_rooms),
    MaintenanceStep("promote_waiting_rooms", room_lifecycle.promote_full_waiting_rooms),
    MaintenanceStep("matching_rooms", room_lifecycle.ensure_matching_rooms),
    MaintenanceStep("health_check", room_lifecycle.monitor_room_health, _health_due),
)


@dataclass(slots=True)
class SweepReport:
    """Outcome of one sweep: per-step results, failures and skipped steps."""

    started_at: datetime
    results: dict[str, Any] = field(default_factory=dict)
    failures: dict[str, str] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return not self.failures


def run_sweep(
    session_scope: SessionScope,
    *,
    now: datetime | None = None,
    settings: Settings | None = None,
    steps: Sequence[MaintenanceStep] = DEFAULT_STEPS,
) -> SweepReport:
    """Run every due step in order, each in its own session.

    A failing step is logged and counted; the remaining steps still run.
    """

    settings = settings or get_settings()
    now = now or utcnow()
    report = SweepReport(started_at=now)
    start = time.perf_counter()

    for step in steps:
        if not step.due(now, settings):
            report.skipped.append(step.name)
            continue
        try:
            with session_scope() as db:
                report.results[step.name] = step.run(db, now=now, settings=settings)
        except Exception as exc:
            logger.exception("Room maintenance step %s failed", step.name)
            report.failures[step.name] = str(exc) or exc.__class__.__name__
            metrics.room_maintenance_runs_total.inc(step=step.name, outcome="error")
        else:
            metrics.room_maintenance_runs_total.inc(step=step.name, outcome="ok")

    report.duration = time.perf_counter() - start
    metrics.room_maintenance_duration_seconds.set(report.duration)
    metrics.room_maintenance_last_run_timestamp.set(time.time())
    logger.debug("Room maintenance sweep completed in %.1fms", report.duration * 1000)
    return report


class RoomMaintenanceWorker:
    """Runs :func:`run_sweep` on a fixed interval until stopped.

    The sweep itself is synchronous and runs in a worker thread. An exception
    escaping a whole sweep delays the next one by the error backoff.
    """

    def __init__(
        self,
        session_scope: SessionScope,
        *,
        settings: Settings | None = None,
        steps: Sequence[MaintenanceStep] = DEFAULT_STEPS,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._session_scope = session_scope
        self._settings = settings or get_settings()
        self._steps = tuple(steps)
        self._clock = clock
        self._stop = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self.sweeps = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="room-maintenance")

    async def stop(self) -> None:
        self._stop.set()
        if self._task is not None:
            await self._task
            self._task = None

    async def _sleep(self, seconds: float) -> None:
        try:
            await asyncio.wait_for(self._stop.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _run(self) -> None:
        logger.info("Room maintenance worker started: %s", self._settings.describe_lifecycle())
        while not self._stop.is_set():
            try:
                await asyncio.to_thread(
                    run_sweep,
                    self._session_scope,
                    now=self._clock(),
                    settings=self._settings,
                    steps=self._steps,
                )
                self.sweeps += 1
            except Exception:
                logger.exception("Room maintenance sweep failed; backing off")
                await self._sleep(self._settings.room_maintenance_error_backoff_seconds)
                continue
            await self._sleep(self._settings.room_maintenance_interval_seconds)
        logger.info("Room maintenance worker stopped")


_worker: RoomMaintenanceWorker | None = None


async def startup_room_maintenance() -> None:
    global _worker
    settings = get_settings()
    if not settings.room_maintenance_enabled:
        logger.info("Room maintenance worker disabled by configuration")
        return

    metrics.mark_initial_state()
    _worker = RoomMaintenanceWorker(get_db_session, settings=settings)
    _worker.start()


async def shutdown_room_maintenance() -> None:
    global _worker
    if _worker is not None:
        await _worker.stop()
        _worker = None


def _create_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run the room lifecycle sweep outside of the API process.",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=0,
        help="Continuous mode interval in seconds. If omitted, a single sweep runs.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging verbosity (DEBUG, INFO, WARNING, ERROR).",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    args = _create_argument_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    if args.interval <= 0:
        report = run_sweep(get_db_session)
        return 0 if report.ok else 1

    settings = get_settings().model_copy(update={"room_maintenance_interval_seconds": args.interval})
    worker = RoomMaintenanceWorker(get_db_session, settings=settings)

    async def _serve() -> None:
        worker.start()
        try:
            await asyncio.Event().wait()
        finally:
            await worker.stop()

    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        logger.info("Room maintenance interrupted; exiting")
    return 0


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(main())
