"""Unit tests for configuration models."""

import pytest
from pydantic import ValidationError

from branch_testkit.config import (
    CliConfig,
    KafkaAppConfig,
    LogConfig,
    MysqlAppConfig,
    PostgresAppConfig,
    SqsAppConfig,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "KAFKA_BOOTSTRAP_SERVERS",
        "KAFKA_TOPIC_NAME",
        "KAFKA_GROUP_ID",
        "QUEUE_NAME",
        "MYSQL_CONNECTION_URL",
        "DB_CONNECTION_URL",
        "TEST_CLI_VERIFY_ATTEMPTS",
        "TEST_CLI_POLL_INTERVAL_SEC",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


class TestKafkaAppConfig:
    def test_defaults(self) -> None:
        config = KafkaAppConfig()

        assert config.BOOTSTRAP_SERVERS == [
            "kafka-cluster.test-mirrord.svc.cluster.local:9092"
        ]
        assert config.TOPIC_NAME == "test-topic"
        assert config.GROUP_ID == "test-consumer-group"
        assert config.AUTO_OFFSET_RESET == "earliest"

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("KAFKA_BOOTSTRAP_SERVERS", "a:9092, b:9092")
        monkeypatch.setenv("KAFKA_TOPIC_NAME", "orders")
        monkeypatch.setenv("KAFKA_GROUP_ID", "branch-group")

        config = KafkaAppConfig()

        assert config.BOOTSTRAP_SERVERS == ["a:9092", "b:9092"]
        assert config.TOPIC_NAME == "orders"
        assert config.GROUP_ID == "branch-group"

    def test_empty_variable_falls_back_to_default(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("KAFKA_TOPIC_NAME", "")

        assert KafkaAppConfig().TOPIC_NAME == "test-topic"

    def test_consumer_config(self) -> None:
        config = KafkaAppConfig(BOOTSTRAP_SERVERS="a:1,b:2", GROUP_ID="g")
        conf = config.get_consumer_config()

        assert conf["bootstrap.servers"] == "a:1,b:2"
        assert conf["group.id"] == "g"
        assert conf["auto.offset.reset"] == "earliest"
        assert conf["partition.assignment.strategy"] == "roundrobin"
        assert conf["enable.auto.offset.store"] is False


class TestConnectorConfigs:
    def test_sqs_queue_name(self, monkeypatch: pytest.MonkeyPatch) -> None:
        assert SqsAppConfig().NAME == "TestQueue"

        monkeypatch.setenv("QUEUE_NAME", "BranchQueue")
        config = SqsAppConfig()

        assert config.NAME == "BranchQueue"
        assert config.max_messages == 10
        assert config.wait_time_seconds == 20

    def test_mysql_url_is_required(self) -> None:
        with pytest.raises(ValidationError):
            MysqlAppConfig()

    def test_mysql_url_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MYSQL_CONNECTION_URL", "mysql://root:pw@db:3306/user")

        config = MysqlAppConfig()

        assert config.CONNECTION_URL == "mysql://root:pw@db:3306/user"
        assert config.default_users == ["Alice", "Bob"]
        assert config.connect_retries == 10

    def test_postgres_url_from_environment(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("DB_CONNECTION_URL", "postgres://u:p@db:5432/userdb")

        config = PostgresAppConfig()

        assert config.CONNECTION_URL == "postgres://u:p@db:5432/userdb"
        assert config.default_users == ["Alice", "Bob", "Charlie"]

    def test_postgres_url_is_required(self) -> None:
        with pytest.raises(ValidationError):
            PostgresAppConfig()


class TestCliConfig:
    def test_defaults(self) -> None:
        config = CliConfig()

        assert config.poll_interval_sec == 2.0
        assert config.branch_ready_timeout_sec == 120.0
        assert config.namespace_deletion_timeout_sec == 120.0
        assert config.source_wait_attempts == 30
        assert config.race_attempts == 5
        assert config.verify_attempts == 1
        assert config.global_timeout_sec == 300.0
        assert config.crd_group == "dbs.mirrord.metalbear.co"
        assert config.crd_version == "v1alpha1"

    def test_environment_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TEST_CLI_VERIFY_ATTEMPTS", "4")
        monkeypatch.setenv("TEST_CLI_POLL_INTERVAL_SEC", "0.5")

        config = CliConfig()

        assert config.verify_attempts == 4
        assert config.poll_interval_sec == 0.5

    def test_rejects_zero_interval(self) -> None:
        with pytest.raises(ValidationError):
            CliConfig(poll_interval_sec=0)


def test_log_level_is_normalized(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOG_LEVEL", "debug  # verbose")

    assert LogConfig().level == "DEBUG"
