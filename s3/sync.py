#!/usr/bin/env python3
"""
Sync a local directory to a deployed static site's bucket and invalidate the
CloudFront cache.

Only new or changed files are uploaded (MD5 compared with the object ETag) and
objects with no local counterpart are deleted.
"""
import fnmatch
import gzip
import os
import sys

from botocore.exceptions import ClientError

from aws import cloudfront
from aws import session as aws_session
from aws.confirm import confirm
from aws.status import StatusStore, StatusFileError, StatusFileNotFound
from aws.steps import DeployError
from . import s3_bucket
from .deploy import default_status_file

GZIP_EXTENSIONS = {'.html', '.htm', '.css', '.js', '.json', '.xml', '.svg', '.txt', '.md'}

# Never uploaded, never deleted
ALWAYS_EXCLUDED = ['.deploy-status-*.json', '.redirect-status-*.json', '.git/*', '.DS_Store']

DELETE_BATCH_SIZE = 1000


def is_excluded(key, patterns):
    """True if the key (or its file name) matches one of the glob patterns."""
    name = key.rsplit('/', 1)[-1]
    return any(fnmatch.fnmatch(key, pattern) or fnmatch.fnmatch(name, pattern) for pattern in patterns)


def collect_local_files(source, exclude=()):
    """
    Walk source and return {key: path}; keys use '/' separators whatever the OS.
    """
    files = {}
    for root, dirs, filenames in os.walk(source):
        dirs.sort()
        for filename in sorted(filenames):
            path = os.path.join(root, filename)
            key = os.path.relpath(path, source).replace(os.sep, '/')
            if is_excluded(key, exclude):
                continue
            files[key] = path
    return files


def prepare_upload(path, key, use_gzip=False):
    """Return (body bytes, extra put_object args) for a local file."""
    with open(path, 'rb') as f:
        body = f.read()
    extra = {'ContentType': s3_bucket.content_type_for(key)}
    if use_gzip and os.path.splitext(key)[1].lower() in GZIP_EXTENSIONS:
        # mtime=0 keeps the output (and so the ETag) stable between runs
        body = gzip.compress(body, compresslevel=9, mtime=0)
        extra['ContentEncoding'] = 'gzip'
    return body, extra


def _exclude_patterns(exclude):
    if not exclude:
        return list(ALWAYS_EXCLUDED)
    if isinstance(exclude, str):
        exclude = [exclude]
    return list(ALWAYS_EXCLUDED) + list(exclude)


def sync_files(s3_client, bucket_name, source, use_gzip=False, exclude=None, dry_run=False):
    """
    Upload new/changed files from source and delete stale objects.

    Args:
        s3_client: boto3 S3 client
        bucket_name: Target bucket
        source: Local directory
        use_gzip: Gzip text assets and set Content-Encoding
        exclude: Glob pattern(s) for keys to leave alone
        dry_run: Print what would change without calling any mutating API

    Returns a dict with 'uploaded', 'skipped' and 'deleted' key lists.
    """
    patterns = _exclude_patterns(exclude)
    local_files = collect_local_files(source, patterns)
    remote = s3_bucket.list_objects(s3_client, bucket_name)

    uploaded, skipped = [], []
    for key, path in local_files.items():
        body, extra = prepare_upload(path, key, use_gzip)
        if remote.get(key) == s3_bucket.md5_hex(body):
            skipped.append(key)
            continue
        if dry_run:
            print(f"(dryrun) upload: {path} to s3://{bucket_name}/{key}")
        else:
            s3_client.put_object(Bucket=bucket_name, Key=key, Body=body, **extra)
            print(f"upload: {path} to s3://{bucket_name}/{key}")
        uploaded.append(key)

    stale = sorted(key for key in remote if key not in local_files and not is_excluded(key, patterns))
    for key in stale:
        print(f"{'(dryrun) ' if dry_run else ''}delete: s3://{bucket_name}/{key}")
    if stale and not dry_run:
        for i in range(0, len(stale), DELETE_BATCH_SIZE):
            batch = stale[i:i + DELETE_BATCH_SIZE]
            s3_client.delete_objects(
                Bucket=bucket_name,
                Delete={'Objects': [{'Key': key} for key in batch], 'Quiet': True}
            )

    return {'uploaded': uploaded, 'skipped': skipped, 'deleted': stale}


def sync_site(config_dict=None, confirm_callback=None, **kwargs):
    """
    Sync files to the bucket recorded for a deployed static site.

    Recognised options: domain, status_file, profile, source (default '.'),
    paths (default ['/*']), gzip, exclude, dry_run, yes.

    Args:
        confirm_callback: If provided, called with the description lines
            before the upload and again before the invalidation instead of
            prompting stdin; should return True to proceed. A dry run asks nothing.

    Returns a summary dict: uploaded, skipped, deleted, invalidation_id.
    """
    params = {**(config_dict or {}), **kwargs}
    domain = params.get('domain')
    status_file = params.get('status_file') or (default_status_file(domain) if domain else None)
    source = params.get('source') or '.'
    paths = params.get('paths') or ['/*']
    dry_run = bool(params.get('dry_run'))
    yes = bool(params.get('yes'))

    if not status_file:
        print("Error: --domain or --status-file is required")
        sys.exit(1)
    if not os.path.isdir(source):
        print(f"Error: source directory not found: {source}")
        sys.exit(1)

    try:
        store = StatusStore.load(status_file, required=True)
        bucket_name = store.get('bucket_name')
        distribution_id = store.get('distribution_id')
        if not bucket_name or not distribution_id:
            raise DeployError(
                f"{status_file} has no bucket_name/distribution_id; run the deploy command first"
            )
        domain = domain or store.get('domain')

        print(f"\n=== Syncing {source} to s3://{bucket_name} ===")
        if dry_run:
            print("Note: dry run, nothing will be changed")
        session = aws_session.create_session(params.get('profile'), store.get('region') or 'us-east-1')
        aws_session.check_credentials(session)

        upload_lines = [
            f"  Source: {os.path.abspath(source)}",
            f"  Bucket: s3://{bucket_name}",
            "  New and changed files are uploaded; objects with no local file are deleted.",
        ]
        if dry_run or confirm(upload_lines, title=f"SYNC: {source} -> s3://{bucket_name}",
                              question="Sync files? (y/n):", yes=yes, confirm_callback=confirm_callback):
            summary = sync_files(
                session.client('s3'), bucket_name, source,
                use_gzip=bool(params.get('gzip')),
                exclude=params.get('exclude'),
                dry_run=dry_run,
            )
        else:
            print("Skipped: no files were uploaded or deleted.")
            summary = {'uploaded': [], 'skipped': [], 'deleted': []}

        print("\n=== Invalidating CloudFront cache ===")
        summary['invalidation_id'] = None
        if dry_run:
            print(f"(dryrun) invalidate: {distribution_id} paths {', '.join(paths)}")
        elif confirm([f"  Distribution: {distribution_id}", f"  Paths: {', '.join(paths)}"],
                     title="INVALIDATE: CloudFront cache", question="Invalidate cache? (y/n):",
                     yes=yes, confirm_callback=confirm_callback):
            summary['invalidation_id'] = cloudfront.invalidate_cloudfront_cache(
                session.client('cloudfront'), distribution_id, paths
            )
        else:
            print("Skipped: cache invalidation.")
    except StatusFileNotFound as e:
        print(f"Error: {e}")
        print("  Run the deploy command for this domain first.")
        sys.exit(1)
    except (DeployError, StatusFileError) as e:
        print(f"Error: {e}")
        sys.exit(1)
    except ClientError as e:
        print(f"Error: AWS request failed: {e}")
        sys.exit(1)

    print(f"\nUploaded {len(summary['uploaded'])}, unchanged {len(summary['skipped'])}, "
          f"deleted {len(summary['deleted'])}")
    if domain:
        print(f"Website URL: https://{domain}")
    return summary
