"""Process-level wiring: startup, supervision, shutdown."""

from __future__ import annotations

import logging
import queue
import signal
import threading
from dataclasses import dataclass
from types import FrameType
from typing import Any, Callable, Iterable, Optional

from filecollector.collector import CollectorService
from filecollector.config import CollectorConfig
from filecollector.scanning import DirectoryScanner
from filecollector.storage import Database, SnapshotPersister
from filecollector.telemetry import CollectorInstruments, TelemetryError, TelemetryHandle, init_telemetry

LOGGER = logging.getLogger(__name__)

DEFAULT_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class ShutdownRequested(Exception):
    """Raised in the main thread when a termination signal arrives."""

    def __init__(self, signum: int) -> None:
        super().__init__(signal.Signals(signum).name)
        self.signum = signum


@dataclass(slots=True)
class AgentRuntime:
    """Resources built at startup, released by :func:`shutdown`.

    Attributes:
        config: Loaded configuration.
        database: Open store handle.
        telemetry: SDK providers, or ``None`` when running without telemetry.
        service: Collector wired to the store and instruments.
    """

    config: CollectorConfig
    database: Database
    telemetry: Optional[TelemetryHandle]
    service: CollectorService


@dataclass(slots=True)
class SupervisorOutcome:
    """How the supervised collector stopped.

    Attributes:
        signal_name: Name of the signal that requested shutdown, if any.
        error: Exception that escaped the collector loop, if any.
    """

    signal_name: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def graceful(self) -> bool:
        """Return whether the collector stopped without an error."""
        return self.error is None


class Supervisor:
    """Run a collector on a worker thread and wait for the first way out.

    Two things can end the wait: a termination signal delivered to the main
    thread, or the worker publishing its exit on the result queue. A signal
    sets the shared stop event and waits for the in-flight cycle to finish.
    """

    def __init__(
        self,
        service: CollectorService,
        *,
        signals: Iterable[int] = DEFAULT_SIGNALS,
    ) -> None:
        self._service = service
        self._signals = tuple(signals)
        self._stop_event = threading.Event()
        self._results: queue.Queue[Optional[BaseException]] = queue.Queue(maxsize=1)

    @property
    def stop_event(self) -> threading.Event:
        """Return the cancellation token shared with the worker."""
        return self._stop_event

    def run(self) -> SupervisorOutcome:
        """Start the worker and block until a signal or worker exit."""
        worker = threading.Thread(target=self._work, name="file-collector", daemon=True)
        previous: dict[int, Any] = {}
        try:
            self._install_handlers(previous)
            worker.start()
            error = self._results.get()
        except ShutdownRequested as exc:
            self._restore_handlers(previous)
            previous = {}
            LOGGER.info("Termination signal received", extra={"signal": str(exc)})
            self._stop_event.set()
            if worker.ident is not None:
                worker.join()
            error = self._drain()
            return SupervisorOutcome(signal_name=str(exc), error=error)
        finally:
            self._restore_handlers(previous)

        if error is not None:
            LOGGER.error("File collector stopped with an error", extra={"error": repr(error)})
        return SupervisorOutcome(error=error)

    def _work(self) -> None:
        error: Optional[BaseException] = None
        try:
            self._service.run(self._stop_event)
        except Exception as exc:
            error = exc
        self._results.put(error)

    def _drain(self) -> Optional[BaseException]:
        try:
            return self._results.get_nowait()
        except queue.Empty:
            return None

    def _install_handlers(self, previous: dict[int, Any]) -> None:
        """Install the shutdown handlers, recording each replaced handler in ``previous``."""
        if threading.current_thread() is not threading.main_thread():
            return
        for signum in self._signals:
            previous[signum] = signal.getsignal(signum)
            signal.signal(signum, _raise_shutdown)

    def _restore_handlers(self, previous: dict[int, Any]) -> None:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


def _raise_shutdown(signum: int, _frame: Optional[FrameType]) -> None:
    raise ShutdownRequested(signum)


def bootstrap(
    config: CollectorConfig,
    *,
    telemetry_factory: Callable[..., Optional[TelemetryHandle]] = init_telemetry,
    interval: Optional[float] = None,
) -> AgentRuntime:
    """Open the store, create the schema, set up telemetry and the collector.

    Telemetry failures degrade to no-op instruments; every other failure is
    fatal and leaves nothing open.

    Raises:
        ConnectError: If the store is unreachable.
        MigrationError: If the schema cannot be created.
    """
    database = Database.connect(config.database)
    try:
        database.migrate()
    except Exception:
        database.close()
        raise

    telemetry: Optional[TelemetryHandle]
    try:
        telemetry = telemetry_factory(config.telemetry, config.node_name)
    except TelemetryError as exc:
        LOGGER.warning("OpenTelemetry initialization failed", extra={"error": str(exc)})
        telemetry = None

    instruments = telemetry.instruments() if telemetry is not None else CollectorInstruments.noop()
    service = CollectorService(
        config,
        scanner=DirectoryScanner(),
        persister=SnapshotPersister(database.session_factory),
        instruments=instruments,
        interval=interval,
    )
    return AgentRuntime(config=config, database=database, telemetry=telemetry, service=service)


def shutdown(runtime: AgentRuntime) -> None:
    """Flush telemetry within the configured deadline, then close the store."""
    if runtime.telemetry is not None:
        try:
            runtime.telemetry.shutdown(runtime.config.telemetry.shutdown_timeout_seconds)
        except TelemetryError as exc:
            LOGGER.error("OpenTelemetry shutdown failed", extra={"error": str(exc)})
    runtime.database.close()


def run_agent(
    config: CollectorConfig,
    *,
    telemetry_factory: Callable[..., Optional[TelemetryHandle]] = init_telemetry,
    signals: Iterable[int] = DEFAULT_SIGNALS,
) -> SupervisorOutcome:
    """Start the agent and block until it has shut down.

    Raises:
        ConnectError: If the store is unreachable at startup.
        MigrationError: If the schema cannot be created at startup.
    """
    runtime = bootstrap(config, telemetry_factory=telemetry_factory)
    try:
        outcome = Supervisor(runtime.service, signals=signals).run()
    finally:
        shutdown(runtime)
    LOGGER.info("File collector shut down", extra={"node_name": config.node_name})
    return outcome


__all__ = [
    "AgentRuntime",
    "ShutdownRequested",
    "Supervisor",
    "SupervisorOutcome",
    "bootstrap",
    "run_agent",
    "shutdown",
]
