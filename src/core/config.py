import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional

DATASET_TYPES = ("closing", "opening")
START_METHODS = ("spawn", "fork", "forkserver")


def _parse_bool(value: Optional[str], default: bool) -> bool:
    if value is None or value == "":
        return default
    v = value.strip().lower()
    if v in {"0", "false", "no"}:
        return False
    return True


@dataclass
class Settings:
    bet_data_dir: str
    store_file: str
    log_level: str

    default_dataset_type: str

    ingest_use_background: bool
    ingest_transfer_buffer: bool
    ingest_timeout_seconds: float
    ingest_start_method: str
    ingest_self_check: bool

    enable_metrics_file: bool
    metrics_dir: str

    enable_prometheus_exporter: bool
    prometheus_port: int

    @property
    def store_path(self) -> str:
        return os.path.join(self.bet_data_dir or "data", self.store_file)

    @classmethod
    def from_env(cls) -> "Settings":
        def _int(name: str, default: int) -> int:
            raw = os.getenv(name)
            if not raw:
                return default
            try:
                return int(raw)
            except ValueError as e:
                raise ValueError(f"Variabile {name} deve essere un intero (valore: {raw!r})") from e

        def _float(name: str, default: float) -> float:
            raw = os.getenv(name)
            if not raw:
                return default
            try:
                return float(raw)
            except ValueError as e:
                raise ValueError(f"Variabile {name} deve essere un numero (valore: {raw!r})") from e

        bet_data_dir = os.getenv("BET_DATA_DIR", "data")
        store_file = os.getenv("ODDS_STORE_FILE", "odds_store.sqlite3")
        log_level = os.getenv("BET_LOG_LEVEL", "INFO").upper()

        default_dataset_type = os.getenv("DEFAULT_DATASET_TYPE", "closing").strip().lower()
        if default_dataset_type not in DATASET_TYPES:
            raise ValueError(
                f"Variabile DEFAULT_DATASET_TYPE deve essere uno di {DATASET_TYPES} (valore: {default_dataset_type!r})"
            )

        ingest_use_background = _parse_bool(os.getenv("INGEST_USE_BACKGROUND"), True)
        ingest_transfer_buffer = _parse_bool(os.getenv("INGEST_TRANSFER_BUFFER"), False)
        ingest_timeout_seconds = _float("INGEST_TIMEOUT_SECONDS", 300.0)
        if ingest_timeout_seconds <= 0:
            raise ValueError("Variabile INGEST_TIMEOUT_SECONDS deve essere > 0")
        ingest_start_method = os.getenv("INGEST_START_METHOD", "spawn").strip().lower()
        if ingest_start_method not in START_METHODS:
            ingest_start_method = "spawn"
        ingest_self_check = _parse_bool(os.getenv("INGEST_SELF_CHECK"), True)

        enable_metrics_file = _parse_bool(os.getenv("ENABLE_METRICS_FILE"), True)
        metrics_dir = os.getenv("METRICS_DIR", "metrics")

        enable_prometheus_exporter = _parse_bool(os.getenv("ENABLE_PROMETHEUS_EXPORTER"), False)
        prometheus_port = _int("PROMETHEUS_PORT", 9100)

        return cls(
            bet_data_dir=bet_data_dir,
            store_file=store_file,
            log_level=log_level,
            default_dataset_type=default_dataset_type,
            ingest_use_background=ingest_use_background,
            ingest_transfer_buffer=ingest_transfer_buffer,
            ingest_timeout_seconds=ingest_timeout_seconds,
            ingest_start_method=ingest_start_method,
            ingest_self_check=ingest_self_check,
            enable_metrics_file=enable_metrics_file,
            metrics_dir=metrics_dir,
            enable_prometheus_exporter=enable_prometheus_exporter,
            prometheus_port=prometheus_port,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()


def _reset_settings_cache_for_tests() -> None:
    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "_reset_settings_cache_for_tests", "DATASET_TYPES"]
