from pathlib import Path

from paperwatch.config import Settings
from paperwatch.runtime import Runtime


def test_paths_derive_from_data_dir() -> None:
    config = Settings(DATA_DIR=Path("/tmp/pw"), DATABASE_FILE="x.db", LOG_FILE="pw.log")
    assert config.database_path == Path("/tmp/pw/x.db")
    assert config.log_file_path == Path("/tmp/pw/pw.log")


def test_empty_log_file_disables_file_sink() -> None:
    assert Settings(LOG_FILE="").log_file_path is None


def test_worker_config_ignores_unset_overrides() -> None:
    config = Runtime.worker_config(max_subscriptions=None, dry_run=True)
    assert config.max_subscriptions == 50
    assert config.max_papers_per_subscription == 5
    assert config.dry_run is True
