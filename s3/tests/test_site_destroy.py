"""Unit tests for static site teardown using the mock boto3 session."""
import os
import sys
from unittest.mock import patch
import pytest

_repo_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
if _repo_root not in sys.path:
    sys.path.insert(0, _repo_root)

from aws import route53
from aws.mock_boto3 import MockSession
from aws.status import StatusStore
from s3 import deploy, destroy

DOMAIN = "example.com"


@pytest.fixture
def mock_session():
    session = MockSession()
    session.seed_route53_hosted_zone("Z1", DOMAIN)
    return session


@pytest.fixture
def deployed(mock_session, tmp_path):
    """A completed deployment; returns the status file path."""
    path = str(tmp_path / "status.json")
    with patch("aws.session.boto3.Session", return_value=mock_session), \
            patch("aws.verify.resolve_dns", return_value=[]):
        deploy.deploy_static_site(domain=DOMAIN, status_file=path, yes=True)
    return path


def _destroy(session, status_file, **kwargs):
    with patch("aws.session.boto3.Session", return_value=session), \
            patch("aws.steps.time.sleep"):
        return destroy.destroy_static_site(status_file=status_file, **kwargs)


class TestDestroyStaticSite:
    """Tests for destroy_static_site."""

    def test_removes_everything(self, mock_session, deployed):
        store = StatusStore.load(deployed)
        validation_name = store.get("certificate_validation_records")[0]["name"]

        assert _destroy(mock_session, deployed, yes=True) is True

        assert mock_session.buckets == {}
        assert mock_session.distributions == {}
        assert mock_session.origin_access_controls == {}
        assert mock_session.certificates == {}
        assert mock_session.route53_records("Z1", DOMAIN) == []
        assert mock_session.route53_records("Z1", validation_name) == []

        store = StatusStore.load(deployed)
        assert store.get("removal_completed") is True
        assert store.has("removal_completed_at")
        for step in ("dns", "cloudfront", "oac", "certificate", "s3_bucket", "content", "bucket_policy"):
            assert store.step_status(step) == "removed"
        assert store.is_step_completed("hosted_zone")

    def test_redeploy_after_removal(self, mock_session, deployed):
        _destroy(mock_session, deployed, yes=True)
        with patch("aws.session.boto3.Session", return_value=mock_session), \
                patch("aws.verify.resolve_dns", return_value=[]):
            store = deploy.deploy_static_site(domain=DOMAIN, status_file=deployed, yes=True)
        assert deploy.incomplete_steps(store) == []
        assert sorted(mock_session.buckets["example.com-static-site"]["objects"]) == ["error.html", "index.html"]

    def test_repointed_dns_record_is_left_alone(self, mock_session, deployed):
        mock_session.seed_route53_record("Z1", route53.alias_record_set(DOMAIN, "A", "dsomeoneelse.cloudfront.net"))

        _destroy(mock_session, deployed, yes=True)

        a_records = mock_session.route53_records("Z1", DOMAIN, "A")
        assert a_records[0]["AliasTarget"]["DNSName"] == "dsomeoneelse.cloudfront.net."
        assert mock_session.route53_records("Z1", DOMAIN, "AAAA") == []
        assert mock_session.distributions == {}

    def test_confirmation_declined(self, mock_session, deployed):
        seen = []
        with pytest.raises(SystemExit) as exc:
            _destroy(mock_session, deployed, confirm_callback=lambda lines: seen.extend(lines) or False)
        assert exc.value.code == 0
        assert any("example.com-static-site" in line for line in seen)
        assert "example.com-static-site" in mock_session.buckets

    def test_typed_confirmation(self, mock_session, deployed):
        with patch("builtins.input", return_value="yes"):
            assert _destroy(mock_session, deployed) is True
        assert mock_session.buckets == {}

    def test_rerun_after_completed_removal_asks_again(self, mock_session, deployed):
        _destroy(mock_session, deployed, yes=True)
        prompts = []
        result = _destroy(mock_session, deployed, confirm_callback=lambda lines: prompts.append(lines) or True)
        assert result is True
        assert len(prompts) == 2

    def test_distribution_still_deploying_is_left_for_rerun(self, mock_session, deployed):
        mock_session.set_distribution_status("InProgress")
        assert _destroy(mock_session, deployed, yes=True) is False

        store = StatusStore.load(deployed)
        assert not store.get("removal_completed")
        assert store.get("distribution_id") in mock_session.distributions
        assert store.get("certificate_arn") in mock_session.certificates
        assert "example.com-static-site" in mock_session.buckets
        assert store.step_status("s3_bucket") == "completed"

        mock_session.set_distribution_status("Deployed", store.get("distribution_id"))
        assert _destroy(mock_session, deployed, yes=True) is True
        assert mock_session.certificates == {}
        assert mock_session.buckets == {}

    def test_missing_status_file_exits(self, mock_session, tmp_path):
        with pytest.raises(SystemExit) as exc:
            _destroy(mock_session, str(tmp_path / "missing.json"), yes=True)
        assert exc.value.code == 1
