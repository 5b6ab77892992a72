"""
tests/test_config.py — YAML Configuration Loader
=================================================
"""

from __future__ import annotations

import pytest

from bfriends.config import DEFAULT_PAGE_SIZES, load_config


def _write(tmp_path, text: str):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestLoadConfig:
    def test_minimal_file_uses_defaults(self, tmp_path):
        cfg = load_config(_write(tmp_path, "site_name: BFriends\ndefault_community: PublicSphere\n"))
        assert cfg.default_community == "PublicSphere"
        assert cfg.timezone == "UTC"
        assert cfg.page_sizes == DEFAULT_PAGE_SIZES
        assert cfg.suggestion_limit == 20
        assert cfg.allowed_email_domains == ()

    def test_overrides(self, tmp_path):
        cfg = load_config(_write(tmp_path, "\n".join([
            "site_name: BFriends",
            "default_community: Hub",
            "timezone: Asia/Jakarta",
            "page_sizes:",
            "  home: 20",
            "suggestion_limit: 8",
            "allowed_email_domains: [binus.ac.id, binus.edu]",
            "log_level: debug",
        ])))
        assert cfg.page_size("home") == 20
        assert cfg.page_size("search") == 10
        assert cfg.suggestion_limit == 8
        assert cfg.allowed_email_domains == ("binus.ac.id", "binus.edu")
        assert cfg.log_level == "DEBUG"
        assert cfg.timezone == "Asia/Jakarta"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError, match="config.yaml.example"):
            load_config(tmp_path / "nope.yaml")

    def test_missing_required_key(self, tmp_path):
        with pytest.raises(KeyError):
            load_config(_write(tmp_path, "site_name: BFriends\n"))

    def test_config_is_frozen(self, tmp_path):
        cfg = load_config(_write(tmp_path, "site_name: B\ndefault_community: Hub\n"))
        with pytest.raises(AttributeError):
            cfg.site_name = "Other"  # type: ignore[misc]

    def test_unknown_scope_page_size(self, tmp_path):
        cfg = load_config(_write(tmp_path, "site_name: B\ndefault_community: Hub\n"))
        assert cfg.page_size("elsewhere") == 5


class TestConfigureLogging:
    def test_sets_package_level(self):
        import logging

        from bfriends.logging_setup import configure_logging

        configure_logging("debug")
        assert logging.getLogger("bfriends").level == logging.DEBUG
        configure_logging("INFO")
        assert logging.getLogger("bfriends.services.vote_service").getEffectiveLevel() == logging.INFO
