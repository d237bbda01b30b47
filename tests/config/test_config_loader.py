"""
Tests for sales-cycle configuration loading (sales_config).

Covers the bundled default set, overrides through an explicit path and the
SALES_CONFIG_PATH variable, and validation failures.
"""

from decimal import Decimal
from pathlib import Path

import pytest
import yaml

from sales_config import CONFIG_PATH_ENV, SalesConfig, get_active_config
from sales_config.loader import parse_sales_config
from sales_config.schema import DocumentNumbering


def _write(tmp_path, data) -> Path:
    path = tmp_path / "sales.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class TestDefaultConfig:

    def test_bundled_set_matches_defaults(self, monkeypatch):
        monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
        config = get_active_config()

        assert config.config_id == "default"
        assert config.default_credit_term_days == 30
        assert config.site_code_width == 3
        assert config.default_site_code == "001"
        assert config.return_quantity_tolerance == Decimal("0.0001")
        assert config.numbering_for("invoice").render(1) == "FC-000001"
        assert config.numbering_for("credit_note").render(1, 2024) == "NC-2024-000001"
        assert config.checksum

    def test_trace_logged(self, monkeypatch, captured_logs):
        monkeypatch.delenv(CONFIG_PATH_ENV, raising=False)
        get_active_config()

        traces = [r for r in captured_logs() if r["message"] == "SALES_CONFIG_TRACE"]
        assert traces and traces[0]["config_id"] == "default"


class TestOverrides:

    def test_explicit_path(self, tmp_path):
        path = _write(tmp_path, {
            "config_id": "branch-north",
            "default_credit_term_days": 60,
            "numbering": {"invoice": {"prefix": "FE", "width": 8}},
        })

        config = get_active_config(path)

        assert config.config_id == "branch-north"
        assert config.default_credit_term_days == 60
        assert config.numbering_for("invoice").render(7) == "FE-00000007"
        # unspecified document types keep their defaults
        assert config.numbering_for("order").prefix == "PED"

    def test_environment_variable(self, tmp_path, monkeypatch):
        path = _write(tmp_path, {"config_id": "from-env"})
        monkeypatch.setenv(CONFIG_PATH_ENV, str(path))

        assert get_active_config().config_id == "from-env"

    def test_checksum_tracks_content(self):
        first = parse_sales_config({"default_credit_term_days": 30})
        second = parse_sales_config({"default_credit_term_days": 31})
        assert first.checksum != second.checksum

    def test_numeric_site_code_kept_as_text(self):
        assert parse_sales_config({"default_site_code": 1}).default_site_code == "1"


class TestValidation:

    def test_unknown_key(self):
        with pytest.raises(ValueError, match="Unknown configuration keys"):
            parse_sales_config({"colour": "blue"})

    def test_unknown_document_type(self):
        with pytest.raises(ValueError):
            parse_sales_config({"numbering": {"receipt": {"prefix": "RC"}}})

    @pytest.mark.parametrize(
        "overrides",
        [
            {"default_credit_term_days": 0},
            {"activity_log_capacity": -1},
            {"stamping_timeout_seconds": 0},
            {"currency": "PESOS"},
            {"return_quantity_tolerance": "-0.1"},
            {"invoice_notes_max_length": 5},
        ],
    )
    def test_invalid_values(self, overrides):
        with pytest.raises(ValueError):
            parse_sales_config(overrides)

    def test_bad_decimal(self):
        with pytest.raises(ValueError):
            parse_sales_config({"return_quantity_tolerance": "a lot"})

    def test_numbering_width_positive(self):
        with pytest.raises(ValueError):
            DocumentNumbering("FC", width=0)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")

    def test_config_is_frozen(self):
        config = SalesConfig()
        with pytest.raises(AttributeError):
            config.currency = "USD"
