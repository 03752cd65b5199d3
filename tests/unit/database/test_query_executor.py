import subprocess
from unittest.mock import MagicMock

import pytest

from branch_testkit.database.executor import (
    MysqlQueryExecutor,
    PostgresQueryExecutor,
    print_query,
)
from branch_testkit.errors import QueryFailedError


def _completed(returncode=0, stdout=""):
    return subprocess.CompletedProcess(args=["kubectl"], returncode=returncode, stdout=stdout)


@pytest.fixture
def runner():
    return MagicMock(return_value=_completed(stdout="ok\n"))


class TestMysqlQueryExecutor:
    def test_builds_kubectl_exec_command(self, runner):
        executor = MysqlQueryExecutor("test-mirrord", "secret", runner=runner)

        output = executor.execute("mysql-0", "user", "SELECT 1")

        assert output == "ok\n"
        argv = runner.call_args.args[0]
        assert argv[:6] == ["kubectl", "exec", "-n", "test-mirrord", "mysql-0", "--"]
        assert argv[6:8] == ["sh", "-c"]
        assert argv[8] == "mysql -u root -psecret -e 'USE user; SELECT 1' 2>/dev/null"

    def test_captures_combined_output(self, runner):
        MysqlQueryExecutor("ns", "pw", timeout=12.0, runner=runner).execute(
            "pod", "user", "SELECT 1"
        )

        kwargs = runner.call_args.kwargs
        assert kwargs["stdout"] == subprocess.PIPE
        assert kwargs["stderr"] == subprocess.STDOUT
        assert kwargs["text"] is True
        assert kwargs["timeout"] == 12.0

    def test_per_call_timeout_wins(self, runner):
        MysqlQueryExecutor("ns", "pw", timeout=12.0, runner=runner).execute(
            "pod", "user", "SELECT 1", timeout=3.0
        )

        assert runner.call_args.kwargs["timeout"] == 3.0

    def test_omits_use_without_database(self, runner):
        MysqlQueryExecutor("ns", "pw", runner=runner).execute("pod", "", "SHOW DATABASES")

        assert runner.call_args.args[0][-1] == (
            "mysql -u root -ppw -e 'SHOW DATABASES' 2>/dev/null"
        )

    def test_quotes_shell_metacharacters(self, runner):
        MysqlQueryExecutor("ns", "p'w", runner=runner).execute(
            "pod", "user", "SELECT `id` FROM t"
        )

        shell = runner.call_args.args[0][-1]
        assert "-e 'USE user; SELECT `id` FROM t'" in shell
        assert "-p'p'\"'\"'w'" in shell

    def test_failure_hides_output(self, runner):
        runner.return_value = _completed(returncode=1, stdout="ERROR 1045 -psecret")
        executor = MysqlQueryExecutor("ns", "secret", runner=runner)

        with pytest.raises(QueryFailedError) as exc_info:
            executor.execute("pod", "user", "SELECT 1")

        assert "mysql query failed" in str(exc_info.value)
        assert "secret" not in str(exc_info.value)
        assert exc_info.value.output is None


class TestPostgresQueryExecutor:
    def test_builds_psql_command(self, runner):
        executor = PostgresQueryExecutor("ns", runner=runner)

        executor.execute("pg-0", "branch_db", "SELECT 1")

        assert runner.call_args.args[0] == [
            "kubectl",
            "exec",
            "-n",
            "ns",
            "pg-0",
            "--",
            "psql",
            "-U",
            "postgres",
            "-d",
            "branch_db",
            "-c",
            "SELECT 1",
        ]

    def test_failure_carries_output(self, runner):
        runner.return_value = _completed(
            returncode=2, stdout='psql: error: database "nope" does not exist'
        )

        with pytest.raises(QueryFailedError) as exc_info:
            PostgresQueryExecutor("ns", runner=runner).execute("pod", "nope", "SELECT 1")

        assert "postgres query failed" in str(exc_info.value)
        assert 'database "nope" does not exist' in str(exc_info.value)
        assert exc_info.value.output.startswith("psql: error")


@pytest.mark.parametrize(
    "error",
    [
        FileNotFoundError("kubectl"),
        subprocess.TimeoutExpired(cmd="kubectl", timeout=5),
    ],
)
def test_spawn_failures_become_query_errors(runner, error):
    runner.side_effect = error

    with pytest.raises(QueryFailedError) as exc_info:
        PostgresQueryExecutor("ns", runner=runner).execute("pod", "db", "SELECT 1")

    assert exc_info.value.cause is error


def test_print_query_prints_trimmed_lines(runner, capsys):
    runner.return_value = _completed(stdout="\n id \n----\n  1\n\n")

    print_query(PostgresQueryExecutor("ns", runner=runner).execute, "pod", "db", "SELECT 1")

    assert capsys.readouterr().out == "id \n----\n  1\n"
