"""Unit tests for the command-line entry point."""
import os
import sys
from unittest.mock import patch
import pytest

_repo_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
if _repo_root not in sys.path:
    sys.path.insert(0, _repo_root)

import main
from aws.mock_boto3 import MockSession
from aws.status import StatusStore


class TestParseOptions:
    """Tests for argument parsing and config merging."""

    def test_help_exits_1(self, capsys):
        with pytest.raises(SystemExit) as exc:
            main.parse_options(["--help"])
        assert exc.value.code == 1
        assert "deploy" in capsys.readouterr().out

    def test_subcommand_help_exits_1(self):
        with pytest.raises(SystemExit) as exc:
            main.parse_options(["sync", "-h"])
        assert exc.value.code == 1

    def test_missing_command_exits_1(self):
        with pytest.raises(SystemExit) as exc:
            main.parse_options([])
        assert exc.value.code == 1

    def test_unknown_option_exits_nonzero(self):
        with pytest.raises(SystemExit) as exc:
            main.parse_options(["deploy", "--bogus"])
        assert exc.value.code != 0

    def test_defaults(self):
        command, options = main.parse_options(["deploy", "--domain", "example.com"])
        assert command == "deploy"
        assert options["domain"] == "example.com"
        assert options["region"] == "us-east-1"
        assert options["yes"] is False

    def test_paths_are_split(self):
        _, options = main.parse_options(["sync", "--domain", "example.com", "--paths", "/index.html,/app.js"])
        assert options["paths"] == ["/index.html", "/app.js"]

    def test_config_file_fills_unset_options(self, tmp_path):
        config = tmp_path / "deploy.yaml"
        config.write_text("domain: file.com\nregion: eu-west-1\nprofile: personal\n")
        _, options = main.parse_options(["deploy", "--config", str(config), "--profile", "cli"])
        assert options["domain"] == "file.com"
        assert options["region"] == "eu-west-1"
        assert options["profile"] == "cli"

    def test_redirect_options(self):
        _, options = main.parse_options([
            "redirect", "--source-domains", "a.com,b.com", "--target-domain", "c.com",
            "--redirect-type", "302", "--redirect-path", "/landing", "-y",
        ])
        assert options["source_domains"] == "a.com,b.com"
        assert options["redirect_type"] == "302"
        assert options["redirect_path"] == "/landing"
        assert options["yes"] is True


class TestMain:
    """Tests for command dispatch and exit codes."""

    def test_deploy_requires_domain(self):
        with pytest.raises(SystemExit) as exc:
            main.main(["deploy"])
        assert exc.value.code == 1

    def test_deploy_incomplete_exits_1(self, tmp_path):
        store = StatusStore.load(str(tmp_path / "s.json"))
        with patch("main.site_deploy.deploy_static_site", return_value=store):
            with pytest.raises(SystemExit) as exc:
                main.main(["deploy", "--domain", "example.com"])
        assert exc.value.code == 1

    def test_deploy_complete_returns_normally(self, tmp_path):
        store = StatusStore.load(str(tmp_path / "s.json"))
        for name in main.site_deploy.STATIC_SITE_STEPS[:-1]:
            store.mark_completed(name)
        with patch("main.site_deploy.deploy_static_site", return_value=store) as deploy:
            main.main(["deploy", "--domain", "example.com", "--profile", "personal"])
        options = deploy.call_args[0][0]
        assert options["domain"] == "example.com"
        assert options["profile"] == "personal"

    def test_remove_with_leftovers_exits_1(self):
        with patch("main.destroy_static_site", return_value=False):
            with pytest.raises(SystemExit) as exc:
                main.main(["remove", "--domain", "example.com", "-y"])
        assert exc.value.code == 1

    def test_remove_redirect_complete(self):
        with patch("main.destroy_redirect", return_value=True) as destroy:
            main.main(["remove-redirect", "--source-domains", "a.com", "--yes"])
        assert destroy.call_args[0][0]["yes"] is True

    def test_login(self, capsys):
        with patch("aws.session.boto3.Session", return_value=MockSession()):
            main.main(["login"])
        assert "AWS credentials are valid" in capsys.readouterr().out

    def test_login_failure_exits_1(self):
        from botocore.exceptions import ProfileNotFound
        with patch("aws.session.boto3.Session", side_effect=ProfileNotFound(profile="x")):
            with pytest.raises(SystemExit) as exc:
                main.main(["login", "--profile", "x"])
        assert exc.value.code == 1
