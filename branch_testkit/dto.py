from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .errors import UnsupportedKindError

READY_PHASE = "Ready"
JOB_NAME_LABEL = "job-name"
UNKNOWN_COUNT = "?"


class Dialect(Enum):
    MYSQL = "mysql"
    POSTGRES = "postgres"


class BranchKind(Enum):
    """
    Branch database custom resource kinds.

    Attributes:
        MYSQL (str): ``MysqlBranchDatabase``
        POSTGRES (str): ``PgBranchDatabase``
    """

    MYSQL = "MysqlBranchDatabase"
    POSTGRES = "PgBranchDatabase"

    @property
    def plural(self) -> str:
        return _PLURALS[self]

    @classmethod
    def parse(cls, value: "str | BranchKind") -> "BranchKind":
        """Accepts the kind (``PgBranchDatabase``) or its plural resource name."""
        if isinstance(value, BranchKind):
            return value
        for kind in cls:
            if value in (kind.value, kind.plural):
                return kind
        raise UnsupportedKindError(f"unsupported kind: {value}")


_PLURALS = {
    BranchKind.MYSQL: "mysqlbranchdatabases",
    BranchKind.POSTGRES: "pgbranchdatabases",
}


@dataclass(frozen=True)
class PhaseState:
    """
    Observed ``status.phase`` of a branch database.

    Attributes:
        phase (Optional[str]): phase string, ``None`` when the controller has
            not published a status yet
    """

    phase: Optional[str]

    @property
    def is_ready(self) -> bool:
        return self.phase == READY_PHASE


@dataclass(frozen=True)
class PodRef:
    name: str
    namespace: str
    labels: dict[str, str] = field(default_factory=dict)
    ready: bool = False


@dataclass(frozen=True)
class DatabaseProfile:
    """
    Per-dialect constants used by the CLI commands.

    Attributes:
        dialect (Dialect): database dialect
        branch_prefix (str): branch resource name prefix, scenario appended
        kind (BranchKind): custom resource kind of the branch
        source_pod (str): pod name of the source database
        source_database (str): database queried on the source pod
        branch_database (str): database queried on branch pods
        count_tables (tuple[str, ...]): tables counted by verify-scenario
        requires_password (bool): commands take a trailing password argument
    """

    dialect: Dialect
    branch_prefix: str
    kind: BranchKind
    source_pod: str
    source_database: str
    branch_database: str
    count_tables: tuple[str, ...]
    requires_password: bool

    def branch_name(self, scenario: str) -> str:
        return f"{self.branch_prefix}{scenario}"

    def branch_selector(self, scenario: str) -> str:
        return f"db-owner-name={self.branch_name(scenario)}"

    @staticmethod
    def scenario_selector(scenario: str) -> str:
        return f"test-scenario={scenario}"

    def count_query(self) -> str:
        first, *rest = self.count_tables
        parts = [f"SELECT '{first}' as tbl, COUNT(*) as cnt FROM {first}"]
        parts.extend(f"SELECT '{table}', COUNT(*) FROM {table}" for table in rest)
        query = " UNION ".join(parts)
        if self.dialect is Dialect.POSTGRES:
            query += ";"
        return query


MYSQL_PROFILE = DatabaseProfile(
    dialect=Dialect.MYSQL,
    branch_prefix="mysql-test-branch-",
    kind=BranchKind.MYSQL,
    source_pod="mysql-test",
    source_database="user",
    branch_database="user",
    count_tables=("users", "orders"),
    requires_password=True,
)

POSTGRES_PROFILE = DatabaseProfile(
    dialect=Dialect.POSTGRES,
    branch_prefix="pg-test-branch-",
    kind=BranchKind.POSTGRES,
    source_pod="postgres-test",
    source_database="userdb",
    branch_database="branch_db",
    count_tables=("users", "orders", "products"),
    requires_password=False,
)

PROFILES: dict[Dialect, DatabaseProfile] = {
    Dialect.MYSQL: MYSQL_PROFILE,
    Dialect.POSTGRES: POSTGRES_PROFILE,
}


@dataclass(frozen=True)
class ScenarioExpectation:
    """
    Expected row counts for one scenario.

    Attributes:
        scenario (str): scenario name
        mode (str): free-form mode label, e.g. ``full copy``
        counts (dict[str, str]): table name -> expected count as text
    """

    scenario: str
    mode: str
    counts: dict[str, str]


@dataclass(frozen=True)
class VerificationResult:
    expected: dict[str, str]
    actual: dict[str, str]

    @property
    def passed(self) -> bool:
        return all(
            self.actual.get(table, UNKNOWN_COUNT) == count
            for table, count in self.expected.items()
        )


@dataclass(frozen=True)
class RaceProbeOutcome:
    """
    Result of probing a freshly Ready branch database.

    Attributes:
        attempt (int): attempt number on which the query succeeded
        max_attempts (int): attempt budget
    """

    attempt: int
    max_attempts: int

    @property
    def race_detected(self) -> bool:
        return self.attempt > 1
