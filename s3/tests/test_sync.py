"""Unit tests for syncing a local directory to a deployed site."""
import gzip
import os
import sys
from unittest.mock import patch
import pytest

_repo_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
if _repo_root not in sys.path:
    sys.path.insert(0, _repo_root)

from aws.mock_boto3 import MockSession
from aws.status import StatusStore
from s3 import sync

BUCKET = "example.com-static-site"


@pytest.fixture
def mock_session():
    session = MockSession()
    session.client("s3").create_bucket(Bucket=BUCKET)
    session.client("cloudfront").create_distribution(DistributionConfig={
        "CallerReference": "r", "Aliases": {"Quantity": 1, "Items": ["example.com"]}, "Enabled": True,
    })
    session.calls.clear()
    return session


@pytest.fixture
def status_file(tmp_path, mock_session):
    path = str(tmp_path / "status.json")
    store = StatusStore.create(path, domain="example.com", region="us-east-1")
    store.update({"bucket_name": BUCKET, "distribution_id": list(mock_session.distributions)[0]})
    return path


@pytest.fixture
def site(tmp_path):
    root = tmp_path / "public"
    (root / "assets").mkdir(parents=True)
    (root / "index.html").write_text("<html>home</html>")
    (root / "assets" / "app.js").write_text("console.log(1);")
    (root / "assets" / "app.js.map").write_text("{}")
    (root / "logo.png").write_bytes(b"\x89PNG")
    return root


def _sync(session, status_file, source, **kwargs):
    kwargs.setdefault("yes", True)
    with patch("aws.session.boto3.Session", return_value=session):
        return sync.sync_site(status_file=status_file, source=str(source), **kwargs)


def _objects(session):
    return session.buckets[BUCKET]["objects"]


class TestSyncSite:
    """Tests for sync_site."""

    def test_uploads_with_content_types_and_invalidates(self, mock_session, status_file, site, capsys):
        summary = _sync(mock_session, status_file, site)
        objs = _objects(mock_session)
        assert sorted(objs) == ["assets/app.js", "assets/app.js.map", "index.html", "logo.png"]
        assert objs["index.html"]["ContentType"] == "text/html"
        assert objs["assets/app.js"]["ContentType"] == "application/javascript"
        assert objs["logo.png"]["ContentType"] == "image/png"
        assert mock_session.invalidations[-1]["Paths"] == ["/*"]
        assert summary["invalidation_id"] == mock_session.invalidations[-1]["Id"]
        assert "Website URL: https://example.com" in capsys.readouterr().out

    def test_second_sync_uploads_nothing(self, mock_session, status_file, site):
        _sync(mock_session, status_file, site)
        mock_session.calls.clear()
        summary = _sync(mock_session, status_file, site)
        assert summary["uploaded"] == []
        assert summary["deleted"] == []
        assert len(summary["skipped"]) == 4
        assert mock_session.mutating_calls("s3") == []

    def test_changed_and_stale_files(self, mock_session, status_file, site):
        _sync(mock_session, status_file, site)
        (site / "index.html").write_text("<html>v2</html>")
        (site / "logo.png").unlink()
        summary = _sync(mock_session, status_file, site)
        assert summary["uploaded"] == ["index.html"]
        assert summary["deleted"] == ["logo.png"]
        assert _objects(mock_session)["index.html"]["Body"] == b"<html>v2</html>"
        assert "logo.png" not in _objects(mock_session)

    def test_excluded_files_neither_uploaded_nor_deleted(self, mock_session, status_file, site):
        mock_session.client("s3").put_object(Bucket=BUCKET, Key="keep/remote.map", Body=b"x")
        summary = _sync(mock_session, status_file, site, exclude="*.map")
        assert "assets/app.js.map" not in _objects(mock_session)
        assert "keep/remote.map" in _objects(mock_session)
        assert "keep/remote.map" not in summary["deleted"]

    def test_status_files_are_never_uploaded(self, mock_session, status_file, site):
        (site / ".deploy-status-example.com.json").write_text("{}")
        _sync(mock_session, status_file, site)
        assert ".deploy-status-example.com.json" not in _objects(mock_session)

    def test_gzip_text_assets(self, mock_session, status_file, site):
        _sync(mock_session, status_file, site, gzip=True)
        objs = _objects(mock_session)
        assert objs["index.html"]["ContentEncoding"] == "gzip"
        assert objs["index.html"]["ContentType"] == "text/html"
        assert gzip.decompress(objs["index.html"]["Body"]) == b"<html>home</html>"
        assert "ContentEncoding" not in objs["logo.png"]

        summary = _sync(mock_session, status_file, site, gzip=True)
        assert summary["uploaded"] == []

    def test_custom_invalidation_paths(self, mock_session, status_file, site):
        _sync(mock_session, status_file, site, paths=["/index.html", "/assets/*"])
        assert mock_session.invalidations[-1]["Paths"] == ["/index.html", "/assets/*"]

    def test_dry_run_changes_nothing(self, mock_session, status_file, site, capsys):
        mock_session.client("s3").put_object(Bucket=BUCKET, Key="old.html", Body=b"old")
        mock_session.calls.clear()
        summary = _sync(mock_session, status_file, site, dry_run=True)
        assert mock_session.calls == []
        assert sorted(_objects(mock_session)) == ["old.html"]
        assert summary["deleted"] == ["old.html"]
        assert summary["invalidation_id"] is None
        out = capsys.readouterr().out
        assert "(dryrun) upload:" in out
        assert f"(dryrun) delete: s3://{BUCKET}/old.html" in out
        assert "(dryrun) invalidate:" in out


class TestSyncConfirmation:
    """Uploads and the invalidation are each confirmed unless --yes or a dry run."""

    def test_declined_uploads_nothing(self, mock_session, status_file, site):
        prompts = []
        summary = _sync(mock_session, status_file, site, yes=False,
                        confirm_callback=lambda lines: prompts.append(lines) or False)
        assert len(prompts) == 2
        assert _objects(mock_session) == {}
        assert mock_session.invalidations == []
        assert summary["uploaded"] == []
        assert summary["invalidation_id"] is None

    def test_upload_accepted_invalidation_declined(self, mock_session, status_file, site):
        answers = iter([True, False])
        summary = _sync(mock_session, status_file, site, yes=False, confirm_callback=lambda lines: next(answers))
        assert len(summary["uploaded"]) == 4
        assert mock_session.invalidations == []
        assert summary["invalidation_id"] is None

    def test_typed_answers(self, mock_session, status_file, site):
        with patch("builtins.input", side_effect=["y", "n"]) as prompt:
            summary = _sync(mock_session, status_file, site, yes=False)
        assert prompt.call_count == 2
        assert "index.html" in _objects(mock_session)
        assert summary["invalidation_id"] is None

    def test_dry_run_never_asks(self, mock_session, status_file, site):
        prompts = []
        _sync(mock_session, status_file, site, yes=False, dry_run=True,
              confirm_callback=lambda lines: prompts.append(lines) or True)
        assert prompts == []


class TestSyncPreconditions:
    """Sync refuses to run without a completed deployment record."""

    def test_missing_status_file_exits(self, mock_session, tmp_path, site):
        with pytest.raises(SystemExit) as exc:
            _sync(mock_session, str(tmp_path / "missing.json"), site)
        assert exc.value.code == 1

    def test_missing_distribution_id_exits_before_upload(self, mock_session, tmp_path, site):
        path = str(tmp_path / "partial.json")
        StatusStore.create(path, domain="example.com").set("bucket_name", BUCKET)
        with pytest.raises(SystemExit):
            _sync(mock_session, path, site)
        assert _objects(mock_session) == {}

    def test_missing_source_exits(self, mock_session, status_file, tmp_path):
        with pytest.raises(SystemExit):
            _sync(mock_session, status_file, tmp_path / "nope")

    def test_requires_domain_or_status_file(self, site):
        with pytest.raises(SystemExit):
            sync.sync_site(source=str(site))


class TestHelpers:
    """Tests for the file walking helpers."""

    def test_keys_use_forward_slashes(self, site):
        files = sync.collect_local_files(str(site))
        assert "assets/app.js" in files

    def test_is_excluded_matches_name_or_path(self):
        assert sync.is_excluded("a/b/c.map", ["*.map"])
        assert sync.is_excluded("drafts/x.html", ["drafts/*"])
        assert not sync.is_excluded("index.html", ["*.map"])
