"""Tests for configuration loading (gls_config)."""

from pathlib import Path

import pytest
import yaml

from gls_config import DEFAULTS_FILE, get_active_config
from gls_config.loader import compute_checksum, load_yaml_file, merge_config, parse_settings
from gls_config.schema import DatabaseSettings, GlsSettings, WorkflowSettings
from gls_engines.proposal_status import ProposalStatus


def _write(tmp_path: Path, data: dict) -> Path:
    path = tmp_path / "override.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


class TestDefaults:

    def test_packaged_defaults_match_schema_defaults(self):
        settings = get_active_config(environ={})
        assert settings.workflow == WorkflowSettings()
        assert settings.database == DatabaseSettings()
        assert settings.logging.level == "INFO"

    def test_defaults_file_is_a_mapping(self):
        assert set(load_yaml_file(DEFAULTS_FILE)) == {"database", "workflow", "logging"}


class TestOverrides:

    def test_override_file_from_argument(self, tmp_path):
        path = _write(tmp_path, {"workflow": {"all_deferred_outcome": "under_review", "due_soon_days": 3}})
        settings = get_active_config(path=path, environ={})
        assert settings.workflow.all_deferred_outcome is ProposalStatus.UNDER_REVIEW
        assert settings.workflow.due_soon_days == 3
        assert settings.workflow.proposal_number_prefix == "PROP"

    def test_override_file_from_environment(self, tmp_path):
        path = _write(tmp_path, {"workflow": {"payment_number_prefix": "PMT"}})
        settings = get_active_config(environ={"GLS_CONFIG": str(path)})
        assert settings.workflow.payment_number_prefix == "PMT"

    def test_database_url_from_environment_wins(self, tmp_path):
        path = _write(tmp_path, {"database": {"url": "sqlite:///from-file.db"}})
        settings = get_active_config(
            path=path, environ={"GLS_DATABASE_URL": "postgresql://gls@localhost/gls"},
        )
        assert settings.database.url == "postgresql://gls@localhost/gls"

    def test_missing_override_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(path=tmp_path / "absent.yaml", environ={})

    def test_config_trace_logged(self, captured_logs):
        settings = get_active_config(environ={})
        traces = [r for r in captured_logs() if r["message"] == "GLS_CONFIG_TRACE"]
        assert traces[-1]["checksum"] == settings.checksum


class TestValidation:

    def test_unknown_section_rejected(self):
        with pytest.raises(ValueError, match="Unknown configuration section"):
            parse_settings({"ageing": {"buckets": [1, 2]}})

    def test_unknown_key_rejected(self, tmp_path):
        path = _write(tmp_path, {"workflow": {"due_son_days": 3}})
        with pytest.raises(ValueError, match="due_son_days"):
            get_active_config(path=path, environ={})

    @pytest.mark.parametrize(
        "section, values",
        [
            ("workflow", {"all_deferred_outcome": "approved"}),
            ("workflow", {"due_soon_days": 0}),
            ("workflow", {"proposal_number_prefix": ""}),
            ("database", {"statement_timeout_seconds": 0}),
            ("database", {"pool_size": 0}),
        ],
    )
    def test_invalid_values_rejected(self, section, values):
        with pytest.raises(ValueError):
            parse_settings({section: values})

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError, match="mapping"):
            load_yaml_file(path)


class TestHelpers:

    def test_merge_is_section_wise(self):
        merged = merge_config(
            {"workflow": {"a": 1, "b": 2}, "logging": {"level": "INFO"}},
            {"workflow": {"b": 3}},
        )
        assert merged == {"workflow": {"a": 1, "b": 3}, "logging": {"level": "INFO"}}

    def test_checksum_is_deterministic(self):
        assert compute_checksum({"a": 1, "b": 2}) == compute_checksum({"b": 2, "a": 1})
        assert compute_checksum({"a": 1}) != compute_checksum({"a": 2})

    def test_empty_settings(self):
        settings = parse_settings({})
        assert isinstance(settings, GlsSettings)
        assert settings.checksum
