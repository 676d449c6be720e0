"""Unit tests for configuration loading."""

from __future__ import annotations

import pytest

from adhours.config import get_server_config, parse_server_config


class TestParseServerConfig:
    def test_defaults(self):
        config = parse_server_config({})
        assert config.admission.min_bid == 5000
        assert (config.admission.min_hours, config.admission.max_hours) == (1, 10)
        assert config.admission.max_bids_per_day == 5
        assert config.allocation.daily_capacity == 8
        assert config.storage.backend == "in_memory"
        assert config.auth.public_key == ""

    def test_overrides(self):
        config = parse_server_config(
            {
                "admission": {"min_bid": 100, "max_hours": 12, "max_bids_per_day": 3},
                "allocation": {"daily_capacity": 12},
                "storage": {"backend": "redis", "options": {"url": "redis://cache:6379/0"}},
            }
        )
        assert config.admission.min_bid == 100
        assert config.admission.max_hours == 12
        assert config.admission.max_bids_per_day == 3
        assert config.allocation.daily_capacity == 12
        assert config.storage.options == {"url": "redis://cache:6379/0"}

    def test_public_key_path_resolved_against_config_dir(self, tmp_path):
        (tmp_path / "identity.pem").write_text("PEM")
        config = parse_server_config({"auth": {"public_key_path": "identity.pem"}}, base_dir=tmp_path)
        assert config.auth.public_key == "PEM"

    def test_hmac_verification_uses_secret(self, monkeypatch):
        monkeypatch.setenv("ADHOURS_JWT_SECRET", "from-env")
        config = parse_server_config({})
        assert config.auth.algorithm == "HS256"
        assert config.auth.verification_key == "from-env"
        explicit = parse_server_config({"auth": {"secret": "from-yaml"}})
        assert explicit.auth.verification_key == "from-yaml"

    def test_asymmetric_verification_uses_public_key(self):
        config = parse_server_config(
            {"auth": {"algorithm": "es256", "secret": "ignored", "public_key": "PEM"}}
        )
        assert config.auth.algorithm == "ES256"
        assert config.auth.verification_key == "PEM"

    def test_unsupported_algorithm_rejected(self):
        with pytest.raises(ValueError, match="auth.algorithm"):
            parse_server_config({"auth": {"algorithm": "none"}})

    @pytest.mark.parametrize(
        "data",
        [
            {"admission": {"min_hours": 4, "max_hours": 2}},
            {"admission": {"min_hours": 0}},
            {"admission": {"max_bids_per_day": 0}},
            {"allocation": {"daily_capacity": 0}},
        ],
    )
    def test_inconsistent_limits_rejected(self, data):
        with pytest.raises(ValueError):
            parse_server_config(data)


class TestGetServerConfig:
    def test_reads_path_from_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "server.yaml"
        path.write_text("admission:\n  max_bids_per_day: 2\nallocation:\n  daily_capacity: 6\n")
        monkeypatch.setenv("ADHOURS_CONFIG_PATH", str(path))
        get_server_config.cache_clear()
        try:
            config = get_server_config()
        finally:
            get_server_config.cache_clear()
        assert config.admission.max_bids_per_day == 2
        assert config.allocation.daily_capacity == 6

    def test_missing_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv("ADHOURS_CONFIG_PATH", str(tmp_path / "absent.yaml"))
        get_server_config.cache_clear()
        try:
            with pytest.raises(FileNotFoundError):
                get_server_config()
        finally:
            get_server_config.cache_clear()

    def test_packaged_defaults(self, monkeypatch):
        monkeypatch.delenv("ADHOURS_CONFIG_PATH", raising=False)
        get_server_config.cache_clear()
        config = get_server_config()
        assert config.storage.backend == "in_memory"
        assert config.admission.max_bids_per_day == 5
