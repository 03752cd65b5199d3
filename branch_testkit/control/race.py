# -*- coding: utf-8 -*-
"""Detects a branch reported Ready before its database accepts connections."""

from __future__ import annotations

import time
from typing import Callable, Optional

from ..dto import RaceProbeOutcome
from ..errors import BranchTestkitError, RaceConditionError, WaitTimeoutError
from ..logger import LogManager

logger = LogManager.get_logger(__name__)

READY_MARKER = "ready"
PROBE_QUERY = "SELECT 1 as ready"


def probe_connection(
    query: Callable[[], str],
    *,
    max_attempts: int = 5,
    interval: float = 2.0,
    engine: str = "database",
    sleep: Callable[[float], None] = time.sleep,
) -> RaceProbeOutcome:
    """
    Runs ``query`` right after the branch turned Ready.

    Args:
        query: runs ``SELECT 1 as ready`` against the branch and returns output
        max_attempts: attempt budget
        interval: pause between attempts in seconds
        engine: name used in messages, e.g. ``MySQL``

    Returns:
        RaceProbeOutcome: the attempt that succeeded

    Raises:
        RaceConditionError: every attempt failed
        WaitTimeoutError: raised by ``query``, ends the attempts at once
    """
    last_error: Optional[BranchTestkitError] = None

    for attempt in range(1, max_attempts + 1):
        print(f"Connection attempt {attempt}/{max_attempts}...")
        try:
            output = query()
        except WaitTimeoutError:
            raise
        except BranchTestkitError as exc:
            last_error = exc
            if attempt < max_attempts:
                print(f"   Failed (attempt {attempt}): {exc}")
                sleep(interval)
            continue

        if READY_MARKER in output:
            outcome = RaceProbeOutcome(attempt=attempt, max_attempts=max_attempts)
            print(f"Connection successful on attempt {attempt}")
            if outcome.race_detected:
                print(
                    "WARNING: Connection failed on first attempt but succeeded "
                    "later - potential race condition"
                )
            else:
                print(
                    "No race condition detected - database ready immediately "
                    "when status was Ready"
                )
            return outcome

        last_error = None
        logger.warning("Unexpected probe output on attempt %d: %r", attempt, output)
        if attempt < max_attempts:
            sleep(interval)

    if last_error is not None:
        raise RaceConditionError(
            f"RACE CONDITION DETECTED: Pod marked Ready but {engine} not accepting "
            f"connections after {max_attempts} attempts",
            cause=last_error,
        )
    raise RaceConditionError(
        f"RACE CONDITION: Failed to connect after {max_attempts} attempts"
    )
