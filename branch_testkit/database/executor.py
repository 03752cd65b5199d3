# -*- coding: utf-8 -*-
"""Runs database client binaries inside pods through ``kubectl exec``."""

from __future__ import annotations

import shlex
import subprocess
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from ..errors import QueryFailedError
from ..logger import LogManager

logger = LogManager.get_logger(__name__)

Runner = Callable[..., "subprocess.CompletedProcess[str]"]


class QueryExecutor(ABC):
    """
    Base class for dialect specific executors.

    Args:
        namespace (str): namespace of the target pods
        kubectl_bin (str): kubectl executable
        timeout (Optional[float]): subprocess timeout in seconds
        runner (Runner): ``subprocess.run`` compatible callable
    """

    def __init__(
        self,
        namespace: str,
        kubectl_bin: str = "kubectl",
        timeout: Optional[float] = None,
        runner: Runner = subprocess.run,
    ) -> None:
        self.namespace = namespace
        self._kubectl_bin = kubectl_bin
        self._timeout = timeout
        self._runner = runner

    @abstractmethod
    def build_command(self, pod_name: str, database: str, query: str) -> list[str]:
        """Returns the argv executed on the local machine."""

    @abstractmethod
    def _failure(self, exc: Optional[BaseException], output: str) -> QueryFailedError:
        """Builds the error raised when the client does not succeed."""

    def _kubectl_exec(self, pod_name: str) -> list[str]:
        return [self._kubectl_bin, "exec", "-n", self.namespace, pod_name, "--"]

    def execute(
        self, pod_name: str, database: str, query: str, timeout: Optional[float] = None
    ) -> str:
        argv = self.build_command(pod_name, database, query)
        effective_timeout = timeout if timeout is not None else self._timeout
        logger.debug("Running query in %s/%s: %s", self.namespace, pod_name, query)
        try:
            result: Any = self._runner(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=effective_timeout,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            raise self._failure(exc, "") from exc

        output = result.stdout or ""
        if result.returncode != 0:
            raise self._failure(
                subprocess.CalledProcessError(result.returncode, argv[0]), output
            )
        return output


class MysqlQueryExecutor(QueryExecutor):
    """``mysql`` as root, with stderr dropped inside the pod.

    The password travels on the mysql command line, so it is visible in the
    pod's process list. Dropping stderr keeps it out of error text at least.
    """

    def __init__(self, namespace: str, password: str, **kwargs: Any) -> None:
        super().__init__(namespace, **kwargs)
        self._password = password

    def build_command(self, pod_name: str, database: str, query: str) -> list[str]:
        sql = f"USE {database}; {query}" if database else query
        shell = (
            f"mysql -u root -p{shlex.quote(self._password)} "
            f"-e {shlex.quote(sql)} 2>/dev/null"
        )
        return self._kubectl_exec(pod_name) + ["sh", "-c", shell]

    def _failure(self, exc: Optional[BaseException], output: str) -> QueryFailedError:
        # output intentionally dropped, it may echo the command line
        return QueryFailedError("mysql query failed", cause=exc)


class PostgresQueryExecutor(QueryExecutor):
    def __init__(self, namespace: str, user: str = "postgres", **kwargs: Any) -> None:
        super().__init__(namespace, **kwargs)
        self._user = user

    def build_command(self, pod_name: str, database: str, query: str) -> list[str]:
        return self._kubectl_exec(pod_name) + [
            "psql",
            "-U",
            self._user,
            "-d",
            database,
            "-c",
            query,
        ]

    def _failure(self, exc: Optional[BaseException], output: str) -> QueryFailedError:
        return QueryFailedError("postgres query failed", output=output, cause=exc)


def print_query(
    execute: Callable[[str, str, str], str], pod_name: str, database: str, query: str
) -> None:
    """Runs ``query`` through ``execute`` and prints the trimmed output line by line."""
    output = execute(pod_name, database, query)
    for line in output.strip().split("\n"):
        print(line)
