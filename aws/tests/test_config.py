"""Unit tests for the YAML configuration file."""
import os
import sys
import pytest

_repo_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
if _repo_root not in sys.path:
    sys.path.insert(0, _repo_root)

from aws.config import load_config, merge_options, split_list


def _write(tmp_path, text):
    path = tmp_path / "deploy.yaml"
    path.write_text(text)
    return str(path)


class TestLoadConfig:
    """Tests for load_config."""

    def test_flat_options(self, tmp_path):
        config = load_config(_write(tmp_path, "domain: example.com\nprofile: personal\nregion: eu-west-1\n"))
        assert config == {"domain": "example.com", "profile": "personal", "region": "eu-west-1"}

    def test_sections_are_flattened(self, tmp_path):
        config = load_config(_write(tmp_path, (
            "redirect:\n"
            "  source_domains: [a.com, b.com]\n"
            "  target_domain: c.com\n"
            "  redirect_type: 302\n"
            "sync:\n"
            "  source: ./public\n"
            "  paths: /index.html,/app.js\n"
            "  gzip: true\n"
        )))
        assert config["source_domains"] == ["a.com", "b.com"]
        assert config["target_domain"] == "c.com"
        assert config["redirect_type"] == "302"
        assert config["paths"] == ["/index.html", "/app.js"]
        assert config["gzip"] is True

    def test_comma_separated_source_domains(self, tmp_path):
        config = load_config(_write(tmp_path, "source_domains: a.com, b.com\n"))
        assert config["source_domains"] == ["a.com", "b.com"]

    def test_empty_file(self, tmp_path):
        assert load_config(_write(tmp_path, "")) == {}

    def test_unknown_key_exits(self, tmp_path):
        with pytest.raises(SystemExit):
            load_config(_write(tmp_path, "app_name: legacy\n"))

    def test_unknown_section_key_exits(self, tmp_path):
        with pytest.raises(SystemExit):
            load_config(_write(tmp_path, "sync:\n  bucket: x\n"))

    def test_non_mapping_exits(self, tmp_path):
        with pytest.raises(SystemExit):
            load_config(_write(tmp_path, "- a\n- b\n"))

    def test_invalid_yaml_exits(self, tmp_path):
        with pytest.raises(SystemExit):
            load_config(_write(tmp_path, "domain: [unclosed\n"))

    def test_missing_file_exits(self, tmp_path):
        with pytest.raises(SystemExit):
            load_config(str(tmp_path / "missing.yaml"))


class TestMergeOptions:
    """Command-line values win; unset ones come from the file."""

    def test_cli_wins(self):
        merged = merge_options({"domain": "cli.com", "profile": None}, {"domain": "file.com", "profile": "p"})
        assert merged["domain"] == "cli.com"
        assert merged["profile"] == "p"

    def test_false_flag_filled_from_file(self):
        assert merge_options({"gzip": False}, {"gzip": True})["gzip"] is True

    def test_split_list(self):
        assert split_list("a.com,b.com c.com") == ["a.com", "b.com", "c.com"]
        assert split_list(None) == []
        assert split_list(["a.com", " "]) == ["a.com"]
