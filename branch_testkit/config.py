from typing import ClassVar, Literal, cast

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class MetricsConfig(BaseSettings):
    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="METRICS_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    enabled: bool = False
    port: int = 9091


class LogConfig(BaseSettings):
    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @field_validator("level", mode="before")
    @classmethod
    def _normalize_level(cls, v: object) -> str:
        if isinstance(v, str):
            return v.split("#", 1)[0].strip().upper()
        raise TypeError(f"level must be str, got {type(v).__name__}")


class KafkaAppConfig(BaseSettings):
    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="KAFKA_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    BOOTSTRAP_SERVERS: str | list[str] = [
        "kafka-cluster.test-mirrord.svc.cluster.local:9092"
    ]
    TOPIC_NAME: str = "test-topic"
    GROUP_ID: str = "test-consumer-group"
    AUTO_OFFSET_RESET: Literal["earliest", "latest", "none"] = "earliest"
    ASSIGNMENT_STRATEGY: str = "roundrobin"
    SESSION_TIMEOUT_MS: int = 45000
    POLL_TIMEOUT_SEC: float = 1.0
    metrics: MetricsConfig = MetricsConfig()

    @field_validator("BOOTSTRAP_SERVERS", mode="before")
    @classmethod
    def _parse_bootstrap_servers(cls, v: object) -> list[str]:
        if isinstance(v, str):
            return [s.strip() for s in v.split(",") if s.strip()]
        if isinstance(v, list):
            for item in cast(list[object], v):
                if not isinstance(item, str):
                    raise TypeError("BOOTSTRAP_SERVERS list entries must be str")
            string_list = cast(list[str], v)
            return [item.strip() for item in string_list if item.strip()]
        raise TypeError(
            f"BOOTSTRAP_SERVERS must be str or list[str], got {type(v).__name__}"
        )

    def get_consumer_config(self) -> dict[str, str | int | bool]:
        return {
            "bootstrap.servers": ",".join(self.BOOTSTRAP_SERVERS),
            "group.id": self.GROUP_ID,
            "auto.offset.reset": self.AUTO_OFFSET_RESET,
            "partition.assignment.strategy": self.ASSIGNMENT_STRATEGY,
            "session.timeout.ms": self.SESSION_TIMEOUT_MS,
            "enable.auto.commit": True,
            "enable.auto.offset.store": False,
        }


class SqsAppConfig(BaseSettings):
    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="QUEUE_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    NAME: str = "TestQueue"
    max_messages: int = Field(default=10, gt=0, le=10)
    wait_time_seconds: int = Field(default=20, ge=0, le=20)
    metrics: MetricsConfig = MetricsConfig()


class MysqlAppConfig(BaseSettings):
    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="MYSQL_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    CONNECTION_URL: str
    connect_retries: int = Field(default=10, gt=0)
    retry_interval_sec: float = 3.0
    default_users: list[str] = ["Alice", "Bob"]


class PostgresAppConfig(BaseSettings):
    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    CONNECTION_URL: str
    connect_retries: int = Field(default=10, gt=0)
    retry_interval_sec: float = 3.0
    default_users: list[str] = ["Alice", "Bob", "Charlie"]


class CliConfig(BaseSettings):
    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="TEST_CLI_",
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )

    kubectl_bin: str = "kubectl"
    crd_group: str = "dbs.mirrord.metalbear.co"
    crd_version: str = "v1alpha1"
    poll_interval_sec: float = Field(default=2.0, gt=0)
    branch_ready_timeout_sec: float = 120.0
    namespace_deletion_timeout_sec: float = 120.0
    pod_ready_timeout_sec: float = 60.0
    source_wait_attempts: int = Field(default=30, gt=0)
    source_init_delay_sec: float = 5.0
    race_attempts: int = Field(default=5, gt=0)
    race_interval_sec: float = 2.0
    query_timeout_sec: float = 60.0
    verify_attempts: int = Field(default=1, gt=0)
    global_timeout_sec: float = Field(default=300.0, gt=0)
