"""Unit tests for redirect teardown using the mock boto3 session."""
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
from redirect import deploy, destroy


@pytest.fixture
def mock_session():
    session = MockSession()
    session.seed_route53_hosted_zone("Z1", "a.com")
    session.seed_route53_hosted_zone("Z2", "b.com")
    session.seed_route53_hosted_zone("Z3", "c.com")
    return session


def _deploy(session, status_file, **kwargs):
    with patch("aws.session.boto3.Session", return_value=session), \
            patch("aws.verify.fetch", return_value=(None, "unreachable")), \
            patch("aws.verify.time.sleep"), \
            patch("aws.steps.time.sleep"):
        return deploy.deploy_redirect(source_domains="a.com,b.com", target_domain="c.com",
                                      status_file=status_file, yes=True, **kwargs)


def _destroy(session, status_file, **kwargs):
    with patch("aws.session.boto3.Session", return_value=session), \
            patch("aws.steps.time.sleep"):
        return destroy.destroy_redirect(status_file=status_file, **kwargs)


@pytest.fixture
def deployed(mock_session, tmp_path):
    path = str(tmp_path / ".redirect-status-a.com.json")
    _deploy(mock_session, path)
    return path


class TestDestroyRedirect:
    """Tests for destroy_redirect."""

    def test_removes_every_domain_and_the_certificate(self, mock_session, deployed):
        validation = StatusStore.load(deployed).get("certificate_validation_records")
        assert len(validation) == 3

        assert _destroy(mock_session, deployed, yes=True) is True

        assert mock_session.buckets == {}
        assert mock_session.distributions == {}
        assert mock_session.certificates == {}
        assert mock_session.route53_records("Z1", "a.com") == []
        assert mock_session.route53_records("Z2", "b.com") == []
        for record in validation:
            assert mock_session.route53_records(record["zone_id"], record["name"]) == []

        store = StatusStore.load(deployed)
        assert store.get("removal_completed") is True
        for step in ("a.com:dns", "b.com:cloudfront", "b.com:bucket", "certificate", "wait_for_distributions"):
            assert store.step_status(step) == "removed"

    def test_redeploy_after_removal(self, mock_session, deployed):
        _destroy(mock_session, deployed, yes=True)
        store = _deploy(mock_session, deployed)
        assert deploy.incomplete_steps(store) == []
        assert len(mock_session.distributions) == 2
        assert len(mock_session.certificates) == 1

    def test_skipped_domain_has_nothing_to_remove(self, mock_session, tmp_path):
        path = str(tmp_path / "status.json")
        mock_session._s3_state["foreign_buckets"] = ["b.com-redirect"]
        _deploy(mock_session, path)

        assert _destroy(mock_session, path, yes=True) is True
        assert mock_session.distributions == {}
        assert mock_session.certificates == {}

    def test_confirmation_declined(self, mock_session, deployed):
        seen = []
        with pytest.raises(SystemExit) as exc:
            _destroy(mock_session, deployed, confirm_callback=lambda lines: seen.extend(lines) or False)
        assert exc.value.code == 0
        assert any("a.com-redirect" in line for line in seen)
        assert any("(shared)" in line for line in seen)
        assert len(mock_session.buckets) == 2

    def test_default_status_file_from_source_domains(self, mock_session, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        _deploy(mock_session, ".redirect-status-a.com.json")
        assert _destroy(mock_session, None, source_domains="a.com,b.com", yes=True) is True
        assert mock_session.buckets == {}

    def test_certificate_in_use_is_left_for_rerun(self, mock_session, deployed):
        mock_session.set_distribution_status("InProgress")
        assert _destroy(mock_session, deployed, yes=True) is False
        store = StatusStore.load(deployed)
        assert store.get("certificate_arn") in mock_session.certificates
        assert len(mock_session.buckets) == 2
        assert not store.get("removal_completed")

        for distribution_id in list(mock_session.distributions):
            mock_session.set_distribution_status("Deployed", distribution_id)
        assert _destroy(mock_session, deployed, yes=True) is True
        assert mock_session.certificates == {}
        assert mock_session.buckets == {}

    def test_repointed_dns_record_is_left_alone(self, mock_session, deployed):
        mock_session.seed_route53_record("Z1", route53.alias_record_set("a.com", "A", "dsomeoneelse.cloudfront.net"))

        assert _destroy(mock_session, deployed, yes=True) is True

        a_records = mock_session.route53_records("Z1", "a.com", "A")
        assert a_records[0]["AliasTarget"]["DNSName"] == "dsomeoneelse.cloudfront.net."
        assert mock_session.route53_records("Z1", "a.com", "AAAA") == []
        assert mock_session.route53_records("Z2", "b.com") == []
        assert mock_session.distributions == {}

    def test_certificate_replaced_after_skipped_domain_is_removed(self, mock_session, tmp_path):
        path = str(tmp_path / "status.json")
        mock_session._s3_state["foreign_buckets"] = ["b.com-redirect"]
        first_arn = _deploy(mock_session, path).get("certificate_arn")
        first_records = StatusStore.load(path).get("certificate_validation_records")

        mock_session._s3_state["foreign_buckets"] = []
        store = _deploy(mock_session, path)
        assert store.get("skipped_domains") == []
        assert store.get("certificate_arn") != first_arn
        assert len(mock_session.certificates) == 2
        assert [e["certificate_arn"] for e in store.get("superseded_certificates")] == [first_arn]

        seen = []
        assert _destroy(mock_session, path, confirm_callback=lambda lines: seen.extend(lines) or True) is True
        assert any(first_arn in line and "(superseded)" in line for line in seen)
        assert mock_session.certificates == {}
        for record in first_records:
            assert mock_session.route53_records(record["zone_id"], record["name"]) == []
        assert StatusStore.load(path).get("superseded_certificates") == []

    def test_requires_status_file_or_sources(self, mock_session):
        with pytest.raises(SystemExit) as exc:
            _destroy(mock_session, None, yes=True)
        assert exc.value.code == 1
