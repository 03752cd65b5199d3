# -*- coding: utf-8 -*-
"""BranchTestRunner - the commands behind ``test-cli <database> ...``."""

from __future__ import annotations

import time
from typing import Callable, Optional

from ..config import CliConfig
from ..control.polling import (
    Deadline,
    check_database_present,
    wait_for_branch_ready,
    wait_for_database,
    wait_for_namespace_deletion,
)
from ..control.race import PROBE_QUERY, probe_connection
from ..control.results import format_counts, parse_counts, verify_counts
from ..database.executor import (
    MysqlQueryExecutor,
    PostgresQueryExecutor,
    QueryExecutor,
    print_query,
)
from ..dto import (
    DatabaseProfile,
    Dialect,
    RaceProbeOutcome,
    ScenarioExpectation,
    VerificationResult,
)
from ..errors import (
    BranchTestkitError,
    KubernetesError,
    PodNotFoundError,
    QueryFailedError,
    VerificationFailedError,
    WaitTimeoutError,
)
from ..k8s.client import KubeClient
from ..logger import LogManager

logger = LogManager.get_logger(__name__)

ENGINE_NAMES = {Dialect.MYSQL: "MySQL", Dialect.POSTGRES: "PostgreSQL"}


class BranchTestRunner:
    """
    Runs one CLI command against one namespace.

    The Kubernetes client is created lazily through ``kube_factory`` so that
    commands which only shell out (``query-source``, ``wait-source``) work
    without cluster credentials.
    """

    def __init__(
        self,
        profile: DatabaseProfile,
        namespace: str,
        password: Optional[str] = None,
        cli_config: Optional[CliConfig] = None,
        deadline: Optional[Deadline] = None,
        kube_factory: Optional[Callable[[], KubeClient]] = None,
        executor: Optional[QueryExecutor] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.profile = profile
        self.namespace = namespace
        self._config = cli_config or CliConfig()
        self._clock = clock
        self._deadline = deadline or Deadline(self._config.global_timeout_sec, clock)
        self._kube_factory = kube_factory or (
            lambda: KubeClient.from_environment(self._config)
        )
        self._kube: Optional[KubeClient] = None
        self._sleep = sleep
        self._executor = executor or self._build_executor(password)

    def _build_executor(self, password: Optional[str]) -> QueryExecutor:
        common = dict(
            kubectl_bin=self._config.kubectl_bin,
            timeout=self._config.query_timeout_sec,
        )
        if self.profile.dialect is Dialect.MYSQL:
            return MysqlQueryExecutor(self.namespace, password or "", **common)
        return PostgresQueryExecutor(self.namespace, **common)

    @property
    def kube(self) -> KubeClient:
        if self._kube is None:
            try:
                self._kube = self._kube_factory()
            except KubernetesError as exc:
                raise KubernetesError("failed to create k8s client", cause=exc) from exc
        return self._kube

    def _query(self, pod_name: str, database: str, query: str) -> str:
        if self._deadline.expired:
            raise WaitTimeoutError("global deadline exceeded")
        timeout = self._deadline.clamp(self._config.query_timeout_sec)
        return self._executor.execute(pod_name, database, query, timeout=timeout)

    def _pause(self, seconds: float) -> None:
        self._sleep(self._deadline.clamp(seconds))

    # ------------------------------------------------------------------
    def verify_scenario(self, expectation: ScenarioExpectation) -> VerificationResult:
        if expectation.mode:
            print(f"Scenario: {expectation.scenario} ({expectation.mode})")
        else:
            print(f"Scenario: {expectation.scenario}")

        try:
            self.kube.get_pod(
                self.namespace, self.profile.scenario_selector(expectation.scenario)
            )
        except PodNotFoundError as exc:
            print("WARNING: Scenario pod not found")
            raise PodNotFoundError("scenario pod not found", cause=exc) from exc

        try:
            branch_pod = self.kube.get_pod(
                self.namespace, self.profile.branch_selector(expectation.scenario)
            )
        except PodNotFoundError as exc:
            print("Status: Branch database not ready yet")
            raise PodNotFoundError("branch database not ready", cause=exc) from exc

        print("Status: Branch database ready")

        attempts = self._config.verify_attempts
        for attempt in range(1, attempts + 1):
            try:
                output = self._query(
                    branch_pod.name,
                    self.profile.branch_database,
                    self.profile.count_query(),
                )
            except QueryFailedError as exc:
                print("WARNING: Query failed")
                raise QueryFailedError("query failed", cause=exc) from exc

            for line in output.strip().split("\n"):
                print(line)

            actual = parse_counts(output, self.profile.dialect, self.profile.count_tables)
            result = verify_counts(expectation, actual)
            if result.passed or attempt == attempts or self._deadline.expired:
                break
            logger.info(
                "Counts not propagated yet (attempt %d/%d): %s",
                attempt,
                attempts,
                format_counts(result.actual),
            )
            self._pause(self._config.poll_interval_sec)

        print(f"Expected: {format_counts(result.expected)}")
        print(f"Actual: {format_counts(result.actual)}")

        if not result.passed:
            print("Result: FAILED")
            raise VerificationFailedError(
                f"verification failed: expected {_plain(result.expected)}, "
                f"got {_plain(result.actual)}"
            )

        print("Result: PASSED")
        return result

    def query_source(self, query: str) -> None:
        profile = self.profile
        if profile.dialect is Dialect.MYSQL:
            check_database_present(
                self._query,
                profile.source_pod,
                profile.source_database,
                settle_delay=self._config.poll_interval_sec,
                sleep=self._pause,
            )
        print_query(self._query, profile.source_pod, profile.source_database, query)

    def query_branch(self, scenario: str, query: str) -> str:
        try:
            branch_pod = self.kube.get_pod(
                self.namespace, self.profile.branch_selector(scenario)
            )
        except PodNotFoundError as exc:
            raise PodNotFoundError(
                f"branch database pod not found for scenario {scenario}", cause=exc
            ) from exc

        try:
            output = self._query(branch_pod.name, self.profile.branch_database, query)
        except QueryFailedError as exc:
            raise QueryFailedError("query failed", cause=exc) from exc

        print(output, end="")
        return output

    def wait_source(self) -> None:
        # mysql checks server liveness only, the source database may not exist yet
        database = (
            "" if self.profile.dialect is Dialect.MYSQL else self.profile.source_database
        )
        wait_for_database(
            self._query,
            self.profile.source_pod,
            database,
            self._config.source_wait_attempts,
            initial_delay=self._config.source_init_delay_sec,
            interval=self._config.poll_interval_sec,
            sleep=self._pause,
        )

    def wait_namespace_deletion(self) -> None:
        wait_for_namespace_deletion(
            self.kube,
            self.namespace,
            self._deadline.clamp(self._config.namespace_deletion_timeout_sec),
            interval=self._config.poll_interval_sec,
            sleep=self._sleep,
            clock=self._clock,
        )
        print("Namespace deleted")

    def race_condition(self, scenario: str) -> RaceProbeOutcome:
        branch_name = self.profile.branch_name(scenario)
        print(f"Watching for branch {branch_name} to become Ready...")

        try:
            wait_for_branch_ready(
                self.kube.phase_reader(self.namespace),
                self.profile.kind,
                branch_name,
                self._deadline.clamp(self._config.branch_ready_timeout_sec),
                interval=self._config.poll_interval_sec,
                sleep=self._sleep,
                clock=self._clock,
            )
        except WaitTimeoutError as exc:
            raise WaitTimeoutError(
                "branch database never became ready", cause=exc
            ) from exc

        print(
            "Status is Ready - attempting immediate connection "
            "(this should work without race condition)..."
        )

        try:
            branch_pod = self.kube.get_pod(
                self.namespace, self.profile.branch_selector(scenario)
            )
        except BranchTestkitError as exc:
            raise PodNotFoundError("failed to get branch pod", cause=exc) from exc

        return probe_connection(
            lambda: self._query(
                branch_pod.name, self.profile.branch_database, PROBE_QUERY
            ),
            max_attempts=self._config.race_attempts,
            interval=self._config.race_interval_sec,
            engine=ENGINE_NAMES[self.profile.dialect],
            sleep=self._pause,
        )


def _plain(counts: dict[str, str]) -> str:
    return " ".join(f"{table}={count}" for table, count in counts.items())
