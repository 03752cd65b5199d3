# -*- coding: utf-8 -*-
"""Bounded sleep-and-retry loops used by the test CLI."""

from __future__ import annotations

import time
from typing import Callable, Optional

from ..dto import BranchKind
from ..errors import (
    BranchTestkitError,
    DatabaseNotReadyError,
    KubernetesError,
    WaitTimeoutError,
)
from ..k8s.client import KubeClient, PhaseReader
from ..logger import LogManager

logger = LogManager.get_logger(__name__)

DEFAULT_INTERVAL_SEC = 2.0

Sleep = Callable[[float], None]
# (pod_name, database, query) -> output
QueryFn = Callable[[str, str, str], str]
Clock = Callable[[], float]


class Deadline:
    """Wall-clock budget shared by every wait of a single CLI invocation."""

    def __init__(self, seconds: float, clock: Clock = time.monotonic) -> None:
        self._clock = clock
        self._expires_at = clock() + seconds

    def remaining(self) -> float:
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        return self.remaining() <= 0.0

    def clamp(self, timeout: float) -> float:
        return min(timeout, self.remaining())


def wait_for_branch_ready(
    reader: PhaseReader,
    kind: BranchKind,
    name: str,
    timeout: float,
    *,
    interval: float = DEFAULT_INTERVAL_SEC,
    sleep: Sleep = time.sleep,
    clock: Clock = time.monotonic,
) -> None:
    """Polls ``status.phase`` until it reads ``Ready``.

    Fetch errors are logged and do not end the loop early; only the deadline
    does.

    Raises:
        WaitTimeoutError: the phase never became ``Ready`` within ``timeout``
    """
    print(f"Waiting for {kind.value} {name} to become Ready...")
    deadline = clock() + timeout
    last_phase: Optional[str] = None

    while clock() < deadline:
        try:
            state = reader.get_phase(kind, name)
        except BranchTestkitError as exc:
            logger.warning("Error checking status of %s %s: %s", kind.value, name, exc)
            sleep(interval)
            continue

        if state.is_ready:
            print(f"{kind.value} {name} is Ready")
            return

        if state.phase != last_phase:
            logger.info("%s %s phase: %s", kind.value, name, state.phase)
            last_phase = state.phase
        sleep(interval)

    raise WaitTimeoutError(f"timeout waiting for {kind.value} {name} to become Ready")


def wait_for_namespace_deletion(
    kube: KubeClient,
    namespace: str,
    timeout: float,
    *,
    interval: float = DEFAULT_INTERVAL_SEC,
    sleep: Sleep = time.sleep,
    clock: Clock = time.monotonic,
) -> None:
    deadline = clock() + timeout
    attempt = 0
    while True:
        sleep(interval)
        attempt += 1
        try:
            if not kube.namespace_exists(namespace):
                return
        except KubernetesError as exc:
            logger.warning("Error reading namespace %s: %s", namespace, exc)
        else:
            print(f"Waiting for namespace deletion... ({attempt})")

        if clock() >= deadline:
            raise WaitTimeoutError(
                f"timeout waiting for namespace {namespace} to be deleted"
            )


def wait_for_database(
    execute: QueryFn,
    pod_name: str,
    database: str,
    max_attempts: int,
    *,
    initial_delay: float = 5.0,
    interval: float = DEFAULT_INTERVAL_SEC,
    sleep: Sleep = time.sleep,
) -> None:
    """Retries ``SELECT 1`` until the database answers.

    A ``WaitTimeoutError`` raised by ``execute`` ends the wait at once.
    """
    print("Waiting for database initialization...")
    sleep(initial_delay)

    for attempt in range(1, max_attempts + 1):
        try:
            execute(pod_name, database, "SELECT 1")
        except WaitTimeoutError:
            raise
        except BranchTestkitError as exc:
            logger.debug("Readiness query failed: %s", exc)
            print(f"Still initializing... ({attempt}/{max_attempts})")
            sleep(interval)
            continue
        print("Database is ready")
        return

    raise WaitTimeoutError("timeout waiting for database to be ready")


def check_database_present(
    execute: QueryFn,
    pod_name: str,
    expected_database: str,
    *,
    settle_delay: float = DEFAULT_INTERVAL_SEC,
    sleep: Sleep = time.sleep,
) -> None:
    sleep(settle_delay)
    try:
        output = execute(pod_name, "", "SHOW DATABASES")
    except WaitTimeoutError:
        raise
    except BranchTestkitError as exc:
        print("Status: Database still initializing...")
        raise DatabaseNotReadyError("database not ready", cause=exc) from exc

    if expected_database not in output.split():
        print("Status: Database still initializing...")
        raise DatabaseNotReadyError(
            f"database not ready: {expected_database} not created yet"
        )
    print("Status: Ready")
