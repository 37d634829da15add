"""Configuration management for estate-deals."""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

from estate_deals.exceptions import ConfigurationError

EVENT_SINK_NAMES = ("console", "json", "kafka", "postgres", "memory")


def _env_int(name: str, default: int | None = None) -> int | None:
    """Read an integer environment variable, rejecting malformed values."""
    import os

    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass
class CommissionConfig:
    """Commission defaults applied when a property carries no rate."""

    default_rate: Decimal = Decimal("2")  # Percent of agreed price

    def __post_init__(self) -> None:
        if not Decimal("0") < self.default_rate <= Decimal("100"):
            raise ConfigurationError(f"Commission rate must be in (0, 100], got {self.default_rate}")


@dataclass
class KafkaConfig:
    """Kafka producer configuration."""

    bootstrap_servers: str = "localhost:9092"
    acks: str = "all"
    batch_size: int = 16384
    linger_ms: int = 5
    compression: str = "snappy"
    retries: int = 3
    topic_prefix: str = "brokerage.events"

    def to_dict(self) -> dict[str, Any]:
        """Convert to confluent-kafka config dict."""
        return {
            "bootstrap.servers": self.bootstrap_servers,
            "acks": self.acks,
            "batch.size": self.batch_size,
            "linger.ms": self.linger_ms,
            "compression.type": self.compression,
            "retries": self.retries,
        }


@dataclass
class PostgresConfig:
    """PostgreSQL connection configuration for the event audit table."""

    host: str = "localhost"
    port: int = 5432
    database: str = "brokerage"
    user: str = "postgres"
    password: str = "postgres"
    events_table: str = "deal_events"

    @property
    def connection_string(self) -> str:
        """Get connection string."""
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass
class OutputConfig:
    """Output configuration."""

    events_dir: Path = field(default_factory=lambda: Path("output"))
    pretty_json: bool = False


@dataclass
class EstateDealsConfig:
    """Main configuration for estate-deals."""

    commission: CommissionConfig = field(default_factory=CommissionConfig)
    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    currency: str = "PKR"
    event_sinks: list[str] = field(default_factory=lambda: ["console"])
    auto_complete_on_settlement: bool = True
    seed: int | None = None
    log_level: str = "INFO"
    log_format: str = "standard"

    def __post_init__(self) -> None:
        unknown = [name for name in self.event_sinks if name not in EVENT_SINK_NAMES]
        if unknown:
            raise ConfigurationError(f"Unknown event sinks: {', '.join(unknown)}")

    @classmethod
    def from_env(cls) -> "EstateDealsConfig":
        """Create config from environment variables."""
        import os

        try:
            commission = CommissionConfig(
                default_rate=Decimal(os.getenv("COMMISSION_DEFAULT_RATE", "2")),
            )
        except InvalidOperation as exc:
            raise ConfigurationError("Commission settings must be decimal numbers") from exc

        kafka = KafkaConfig(
            bootstrap_servers=os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092"),
            acks=os.getenv("KAFKA_ACKS", "all"),
            topic_prefix=os.getenv("TOPIC_PREFIX", "brokerage.events"),
        )

        postgres = PostgresConfig(
            host=os.getenv("POSTGRES_HOST", "localhost"),
            port=_env_int("POSTGRES_PORT", 5432),
            database=os.getenv("POSTGRES_DB", "brokerage"),
            user=os.getenv("POSTGRES_USER", "postgres"),
            password=os.getenv("POSTGRES_PASSWORD", "postgres"),
        )

        output = OutputConfig(
            events_dir=Path(os.getenv("OUTPUT_DIR", "output")),
            pretty_json=os.getenv("PRETTY_JSON", "false").lower() == "true",
        )

        sinks = [name.strip() for name in os.getenv("EVENT_SINKS", "console").split(",") if name.strip()]

        return cls(
            commission=commission,
            kafka=kafka,
            postgres=postgres,
            output=output,
            currency=os.getenv("CURRENCY", "PKR"),
            event_sinks=sinks,
            auto_complete_on_settlement=os.getenv("AUTO_COMPLETE_ON_SETTLEMENT", "true").lower() == "true",
            seed=_env_int("SEED"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "standard"),
        )
