"""
Tests for configuration loading, plugin discovery and scheduler helpers.
"""

from datetime import datetime

import pytest

from conftest import FakeFetcher
from core import plugin_loader
from core.config import DEFAULT_CRON, PlatformConfig, load_config
from core.errors import UnknownSourceError
from core.infra.scheduler import Scheduler
from core.strategies import HtmlListingStrategy, RssFeedStrategy

ENV_VARS = [
    "CONFIG_PATH", "EVENTS_DB_PATH", "JOBS_DB_PATH", "SCHEDULER_TIMEZONE",
    "WORKER_CONCURRENCY", "LOG_LEVEL", "SCRAPER_USER_AGENT",
]

CONFIG_YAML = """
database:
  events_path: /data/events.db
workers:
  concurrency: 2
scheduler:
  default_cron: "0 * * * *"
  schedules:
    czas-dzieci:
      cron: "30 */4 * * *"
    teatr-dramatyczny-bialystok:
      enabled: false
"""


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML, encoding="utf-8")
    return str(path)


class TestLoadConfig:

    def test_defaults_without_file(self, tmp_path):
        cfg = load_config(str(tmp_path / "missing.yaml"), use_dotenv=False)
        assert cfg == PlatformConfig()
        assert cfg.workers.concurrency == 5
        assert cfg.queue.max_attempts == 3

    def test_yaml_values(self, config_file):
        cfg = load_config(config_file, use_dotenv=False)
        assert cfg.database.events_path == "/data/events.db"
        assert cfg.database.jobs_path == "db/jobs.db"
        assert cfg.workers.concurrency == 2

    def test_environment_overrides_yaml(self, config_file, monkeypatch):
        monkeypatch.setenv("EVENTS_DB_PATH", "/tmp/override.db")
        monkeypatch.setenv("WORKER_CONCURRENCY", "9")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        cfg = load_config(config_file, use_dotenv=False)
        assert cfg.database.events_path == "/tmp/override.db"
        assert cfg.workers.concurrency == 9
        assert cfg.logging.level == "DEBUG"

    def test_bad_numeric_env_is_ignored(self, config_file, monkeypatch):
        monkeypatch.setenv("WORKER_CONCURRENCY", "lots")
        assert load_config(config_file, use_dotenv=False).workers.concurrency == 2

    def test_config_path_from_environment(self, config_file, monkeypatch):
        monkeypatch.setenv("CONFIG_PATH", config_file)
        assert load_config(use_dotenv=False).workers.concurrency == 2

    def test_schedule_lookup(self, config_file):
        scheduler = load_config(config_file, use_dotenv=False).scheduler
        assert scheduler.schedule_for("czas-dzieci") == "30 */4 * * *"
        assert scheduler.schedule_for("teatr-dramatyczny-bialystok") is None
        assert scheduler.schedule_for("biblioteka-bialystok") == "0 * * * *"

    def test_retention_in_seconds(self):
        retention = PlatformConfig().queue.retention()
        assert retention == {"completed_age": 86400, "completed_count": 1000, "failed_age": 604800}


class TestPluginLoader:

    def test_discovers_bundled_sources(self):
        plugin_loader.refresh_registry()
        names = set(plugin_loader.list_available())
        assert {"biblioteka-bialystok", "czas-dzieci", "muzeum-podlaskie", "teatr-dramatyczny-bialystok"} <= names

    def test_unknown_source(self):
        with pytest.raises(UnknownSourceError):
            plugin_loader.get("no-such-source")

    def test_build_strategies_by_format(self):
        strategies = plugin_loader.build_strategies(FakeFetcher(), ["czas-dzieci", "biblioteka-bialystok"])
        assert isinstance(strategies[0], RssFeedStrategy)
        assert isinstance(strategies[1], HtmlListingStrategy)

    def test_every_profile_is_well_formed(self):
        for name, profile in plugin_loader.list_available().items():
            assert profile.name == name
            assert profile.urls
            assert all(url.startswith("https://") for url in profile.urls)


class TestScheduler:

    @pytest.mark.parametrize("expression", [DEFAULT_CRON, "30 */4 * * *", "0 6 * * 1-5"])
    def test_valid_expressions(self, expression):
        assert Scheduler.validate_cron_expression(expression)
        Scheduler().cron_trigger(expression)

    @pytest.mark.parametrize("expression", ["", "every hour", "61 * * * *"])
    def test_invalid_expressions(self, expression):
        assert not Scheduler.validate_cron_expression(expression)
        with pytest.raises(ValueError):
            Scheduler().cron_trigger(expression)

    def test_six_field_expression_rejected(self):
        with pytest.raises(ValueError):
            Scheduler().cron_trigger("0 0 6 * * *")

    def test_next_run(self):
        assert Scheduler.next_run("0 6 * * *", datetime(2025, 6, 10, 7, 0)) == datetime(2025, 6, 11, 6, 0)

    def test_health_status_before_start(self):
        scheduler = Scheduler()
        scheduler.add_cron_job(lambda: None, "0 6 * * *", job_id="nightly")
        status = scheduler.get_health_status()
        assert status["running"] is False
        assert status["jobs"] == 1
        assert status["timezone"] == "Europe/Warsaw"
