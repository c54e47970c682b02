#!/usr/bin/env python3
"""
S3 bucket management: creation, website/public-access configuration,
bucket policies, object listing and teardown.
"""
import hashlib
import json
import mimetypes
import os

from botocore.exceptions import ClientError

from aws import steps
from aws.steps import DeployError

CONTENT_TYPES = {
    '.html': 'text/html',
    '.htm': 'text/html',
    '.css': 'text/css',
    '.js': 'application/javascript',
    '.json': 'application/json',
    '.xml': 'application/xml',
    '.svg': 'image/svg+xml',
    '.txt': 'text/plain',
    '.md': 'text/markdown',
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.gif': 'image/gif',
    '.webp': 'image/webp',
    '.ico': 'image/x-icon',
    '.pdf': 'application/pdf',
    '.zip': 'application/zip',
    '.woff': 'font/woff',
    '.woff2': 'font/woff2',
    '.ttf': 'font/ttf',
    '.eot': 'application/vnd.ms-fontobject',
}

BLOCK_ALL_PUBLIC_ACCESS = {
    'BlockPublicAcls': True,
    'IgnorePublicAcls': True,
    'BlockPublicPolicy': True,
    'RestrictPublicBuckets': True
}

ALLOW_PUBLIC_ACCESS = {
    'BlockPublicAcls': False,
    'IgnorePublicAcls': False,
    'BlockPublicPolicy': False,
    'RestrictPublicBuckets': False
}


def bucket_name_for(domain, suffix):
    """
    Derive a bucket name such as 'example.com-static-site'.
    S3 bucket names: 3-63 characters, lowercase letters, digits, dots and hyphens.
    """
    name = f"{domain}-{suffix}".lower().replace('_', '-')
    name = ''.join(c for c in name if c.isalnum() or c in ['-', '.'])
    name = name.strip('.-')
    if len(name) > 63:
        name = name[:63].rstrip('.-')
    return name


def rest_endpoint(bucket_name, region):
    """S3 REST endpoint, used as an origin-access-control origin."""
    return f"{bucket_name}.s3.{region}.amazonaws.com"


def website_endpoint(bucket_name, region):
    """S3 static website endpoint (HTTP only), used for redirect buckets."""
    return f"{bucket_name}.s3-website-{region}.amazonaws.com"


def bucket_exists(s3_client, bucket_name):
    try:
        s3_client.head_bucket(Bucket=bucket_name)
        return True
    except ClientError as e:
        error_code = e.response['Error']['Code']
        if error_code in ('404', 'NoSuchBucket', 'NotFound'):
            return False
        if error_code in ('403', 'Forbidden', 'AccessDenied'):
            raise DeployError(f"S3 bucket '{bucket_name}' exists but is not accessible with these credentials")
        raise


def create_s3_bucket(s3_client, bucket_name, region):
    """
    Create an S3 bucket if it doesn't exist.
    Returns the bucket name.
    """
    if bucket_exists(s3_client, bucket_name):
        print(f"S3 bucket {bucket_name} already exists")
        return bucket_name

    print(f"Creating S3 bucket: {bucket_name}")
    try:
        if region == 'us-east-1':
            # us-east-1 rejects an explicit LocationConstraint
            s3_client.create_bucket(Bucket=bucket_name)
        else:
            s3_client.create_bucket(
                Bucket=bucket_name,
                CreateBucketConfiguration={'LocationConstraint': region}
            )
    except ClientError as e:
        error_code = e.response['Error']['Code']
        if error_code == 'BucketAlreadyOwnedByYou':
            return bucket_name
        if error_code == 'BucketAlreadyExists':
            raise DeployError(f"S3 bucket name '{bucket_name}' is already taken by another AWS account")
        raise
    print(f"Created S3 bucket: {bucket_name}")
    return bucket_name


def set_public_access_block(s3_client, bucket_name, block=True):
    s3_client.put_public_access_block(
        Bucket=bucket_name,
        PublicAccessBlockConfiguration=dict(BLOCK_ALL_PUBLIC_ACCESS if block else ALLOW_PUBLIC_ACCESS)
    )
    print(f"{'Blocked' if block else 'Allowed'} public access for {bucket_name}")


def configure_static_site_bucket(s3_client, bucket_name):
    """
    Website documents (index.html / error.html) and a fully private bucket;
    CloudFront reads it through an origin access control.
    """
    s3_client.put_bucket_website(
        Bucket=bucket_name,
        WebsiteConfiguration={
            'IndexDocument': {'Suffix': 'index.html'},
            'ErrorDocument': {'Key': 'error.html'}
        }
    )
    print(f"Configured {bucket_name} with index.html / error.html")
    set_public_access_block(s3_client, bucket_name, block=True)


def cloudfront_read_policy(bucket_name, distribution_arn):
    """Bucket policy letting only the given CloudFront distribution read objects."""
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Sid": "AllowCloudFrontServicePrincipal",
                "Effect": "Allow",
                "Principal": {"Service": "cloudfront.amazonaws.com"},
                "Action": "s3:GetObject",
                "Resource": f"arn:aws:s3:::{bucket_name}/*",
                "Condition": {"StringEquals": {"AWS:SourceArn": distribution_arn}}
            }
        ]
    }


def public_read_policy(bucket_name):
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Sid": "PublicReadGetObject",
                "Effect": "Allow",
                "Principal": "*",
                "Action": "s3:GetObject",
                "Resource": f"arn:aws:s3:::{bucket_name}/*"
            }
        ]
    }


def put_bucket_policy(s3_client, bucket_name, policy):
    s3_client.put_bucket_policy(Bucket=bucket_name, Policy=json.dumps(policy))
    print(f"Set bucket policy on {bucket_name} ({policy['Statement'][0]['Sid']})")


def object_exists(s3_client, bucket_name, key):
    try:
        s3_client.head_object(Bucket=bucket_name, Key=key)
        return True
    except ClientError as e:
        if e.response['Error']['Code'] in ('404', 'NoSuchKey', 'NotFound'):
            return False
        raise


def content_type_for(path):
    ext = os.path.splitext(path)[1].lower()
    if ext in CONTENT_TYPES:
        return CONTENT_TYPES[ext]
    guessed, _ = mimetypes.guess_type(path)
    return guessed or 'binary/octet-stream'


def md5_hex(data):
    return hashlib.md5(data).hexdigest()


def list_objects(s3_client, bucket_name):
    """Return {key: etag} for every object in the bucket (ETag without quotes)."""
    objects = {}
    paginator = s3_client.get_paginator('list_objects_v2')
    for page in paginator.paginate(Bucket=bucket_name):
        for obj in page.get('Contents', []):
            objects[obj['Key']] = (obj.get('ETag') or '').strip('"')
    return objects


def put_placeholder_content(s3_client, bucket_name, domain):
    """
    Upload a starter index.html and error.html. Existing objects are never overwritten.
    Returns the list of keys uploaded.
    """
    pages = {
        'index.html': (
            "<!DOCTYPE html>\n<html lang=\"en\">\n<head>\n"
            "    <meta charset=\"UTF-8\">\n"
            "    <meta name=\"viewport\" content=\"width=device-width, initial-scale=1.0\">\n"
            f"    <title>{domain}</title>\n</head>\n<body>\n"
            f"    <h1>{domain}</h1>\n"
            "    <p>This site is deployed. Replace this page with the sync command.</p>\n"
            "</body>\n</html>\n"
        ),
        'error.html': (
            "<!DOCTYPE html>\n<html lang=\"en\">\n<head>\n"
            "    <meta charset=\"UTF-8\">\n"
            f"    <title>Page not found - {domain}</title>\n</head>\n<body>\n"
            "    <h1>404 - Page not found</h1>\n"
            f"    <p><a href=\"https://{domain}/\">Back to {domain}</a></p>\n"
            "</body>\n</html>\n"
        ),
    }
    uploaded = []
    for key, body in pages.items():
        if object_exists(s3_client, bucket_name, key):
            print(f"  Kept existing {key}")
            continue
        s3_client.put_object(Bucket=bucket_name, Key=key, Body=body.encode('utf-8'), ContentType='text/html')
        print(f"  Uploaded placeholder {key}")
        uploaded.append(key)
    return uploaded


def empty_and_delete_bucket(s3_client, bucket_name, drop_website=False):
    """
    Delete every object, then the bucket. Returns a StepResult; a bucket that
    is already gone counts as deleted.
    """
    if not bucket_exists(s3_client, bucket_name):
        return steps.completed(f"S3 bucket {bucket_name} already gone")

    if drop_website:
        s3_client.delete_bucket_website(Bucket=bucket_name)

    paginator = s3_client.get_paginator('list_objects_v2')
    n = 0
    for page in paginator.paginate(Bucket=bucket_name):
        keys = [{'Key': obj['Key']} for obj in page.get('Contents', [])]
        if keys:
            s3_client.delete_objects(Bucket=bucket_name, Delete={'Objects': keys, 'Quiet': True})
            n += len(keys)
    if n:
        print(f"  Deleted {n} objects from bucket {bucket_name}")

    try:
        s3_client.delete_bucket(Bucket=bucket_name)
    except ClientError as e:
        error_code = e.response['Error']['Code']
        if error_code == 'NoSuchBucket':
            return steps.completed(f"S3 bucket {bucket_name} already gone")
        if error_code == 'BucketNotEmpty':
            return steps.retryable(f"S3 bucket {bucket_name} is not empty (versioned objects?); empty it and re-run")
        raise
    return steps.completed(f"Deleted S3 bucket {bucket_name}")
