from typing import Iterable

from ..dto import UNKNOWN_COUNT, Dialect, ScenarioExpectation, VerificationResult


def parse_counts(output: str, dialect: Dialect, tables: Iterable[str]) -> dict[str, str]:
    """
    Extracts ``table -> count`` pairs from client output.

    mysql prints ``users\\t2``, so the count is the second field. psql prints
    ``users |   2`` inside a bordered table, so the count is the last field of
    rows with at least three fields. Tables that never show up map to ``?``.
    """
    counts = {table: UNKNOWN_COUNT for table in tables}

    for line in output.split("\n"):
        fields = line.split()
        if dialect is Dialect.MYSQL:
            if len(fields) < 2:
                continue
            name, count = fields[0], fields[1]
        else:
            if len(fields) < 3:
                continue
            name, count = fields[0], fields[-1]

        if name in counts:
            counts[name] = count

    return counts


def verify_counts(
    expectation: ScenarioExpectation, actual: dict[str, str]
) -> VerificationResult:
    return VerificationResult(
        expected=dict(expectation.counts),
        actual={table: actual.get(table, UNKNOWN_COUNT) for table in expectation.counts},
    )


def format_counts(counts: dict[str, str]) -> str:
    return ", ".join(f"{table}={count}" for table, count in counts.items())
