#!/usr/bin/env python3
"""
CloudFront distribution and origin access control management.
"""
import time

from botocore.exceptions import ClientError

from . import steps


def viewer_certificate(certificate_arn):
    return {
        'ACMCertificateArn': certificate_arn,
        'SSLSupportMethod': 'sni-only',
        'MinimumProtocolVersion': 'TLSv1.2_2021',
    }


def find_distribution_by_alias(cloudfront_client, domain):
    """Return (distribution_id, distribution_domain) for the distribution aliased to domain, or (None, None)."""
    paginator = cloudfront_client.get_paginator('list_distributions')
    for page in paginator.paginate():
        for dist in page.get('DistributionList', {}).get('Items', []):
            if domain in dist.get('Aliases', {}).get('Items', []):
                return dist['Id'], dist['DomainName']
    return None, None


def distribution_exists(cloudfront_client, distribution_id):
    try:
        cloudfront_client.get_distribution(Id=distribution_id)
        return True
    except ClientError as e:
        if e.response['Error']['Code'] == 'NoSuchDistribution':
            return False
        raise


def update_viewer_certificate(cloudfront_client, distribution_id, certificate_arn):
    """
    Point a distribution at certificate_arn, leaving the rest of its config alone.
    Returns True if the distribution was changed.
    """
    response = cloudfront_client.get_distribution_config(Id=distribution_id)
    config = response['DistributionConfig']
    if config.get('ViewerCertificate', {}).get('ACMCertificateArn') == certificate_arn:
        return False
    print(f"Updating CloudFront distribution {distribution_id} to use certificate {certificate_arn}")
    config['ViewerCertificate'] = viewer_certificate(certificate_arn)
    cloudfront_client.update_distribution(Id=distribution_id, DistributionConfig=config, IfMatch=response['ETag'])
    return True


def create_distribution(cloudfront_client, distribution_config):
    """
    Create a distribution for the first alias in distribution_config, or reuse
    one that already carries that alias (an alias can only be attached once).

    Returns (distribution_domain, distribution_id).
    """
    domain = distribution_config['Aliases']['Items'][0]
    existing_id, existing_domain = find_distribution_by_alias(cloudfront_client, domain)
    if existing_id:
        print(f"Using existing CloudFront distribution for {domain}: {existing_id}")
        return existing_domain, existing_id

    print(f"Creating CloudFront distribution for {domain}...")
    response = cloudfront_client.create_distribution(DistributionConfig=distribution_config)
    distribution_id = response['Distribution']['Id']
    distribution_domain = response['Distribution']['DomainName']
    print(f"Created CloudFront distribution: {distribution_id}")
    print(f"  Domain: {distribution_domain}")
    print("  Note: Distribution may take 15-20 minutes to deploy")
    return distribution_domain, distribution_id


def wait_for_cloudfront_deployment(cloudfront_client, distribution_id, max_attempts=40, interval=30):
    """
    Wait for CloudFront distribution to reach the Deployed status.
    Returns True once deployed, False if still in progress after max_attempts.
    """
    print(f"Waiting for CloudFront distribution {distribution_id} to deploy...")

    def check():
        status = cloudfront_client.get_distribution(Id=distribution_id)['Distribution']['Status']
        if status == 'Deployed':
            return status
        return None

    if steps.poll_until(check, max_attempts, interval, label=f"Distribution {distribution_id}: InProgress"):
        print(f"CloudFront distribution {distribution_id} is deployed!")
        return True
    print(f"Warning: CloudFront distribution {distribution_id} did not deploy within {max_attempts * interval // 60} minutes")
    return False


def invalidate_cloudfront_cache(cloudfront_client, distribution_id, paths=None):
    """
    Invalidate CloudFront cache for a distribution.

    Args:
        cloudfront_client: Boto3 CloudFront client
        distribution_id: CloudFront distribution ID
        paths: List of paths to invalidate. Defaults to ['/*'] to invalidate everything.

    Returns the invalidation ID.
    """
    if not paths:
        paths = ['/*']

    print(f"Invalidating CloudFront cache for distribution {distribution_id}...")
    print(f"  Paths: {', '.join(paths)}")
    response = cloudfront_client.create_invalidation(
        DistributionId=distribution_id,
        InvalidationBatch={
            'Paths': {
                'Quantity': len(paths),
                'Items': list(paths)
            },
            'CallerReference': f"invalidation-{int(time.time() * 1000)}"
        }
    )
    invalidation_id = response['Invalidation']['Id']
    print(f"Cache invalidation created: {invalidation_id} (status: {response['Invalidation']['Status']})")
    return invalidation_id


def disable_and_delete_distribution(cloudfront_client, distribution_id, max_attempts=40, interval=30):
    """
    Disable a distribution, wait for the change to deploy, then delete it.
    CloudFront refuses to delete an enabled distribution.

    Returns a StepResult: COMPLETED when deleted or already gone, TIMED_OUT
    when the disable has not finished deploying, RETRYABLE when CloudFront
    still refuses the delete.
    """
    try:
        config_resp = cloudfront_client.get_distribution_config(Id=distribution_id)
    except ClientError as e:
        if e.response['Error']['Code'] == 'NoSuchDistribution':
            return steps.completed(f"CloudFront distribution {distribution_id} already gone")
        raise

    config = config_resp['DistributionConfig']
    if config.get('Enabled'):
        config['Enabled'] = False
        cloudfront_client.update_distribution(Id=distribution_id, DistributionConfig=config, IfMatch=config_resp['ETag'])
        print(f"  CloudFront distribution {distribution_id} disabled; waiting for deployment...")

    if not wait_for_cloudfront_deployment(cloudfront_client, distribution_id, max_attempts=max_attempts, interval=interval):
        return steps.timed_out(f"CloudFront distribution {distribution_id} is still deploying the disable; run the removal again later")

    etag = cloudfront_client.get_distribution_config(Id=distribution_id)['ETag']
    try:
        cloudfront_client.delete_distribution(Id=distribution_id, IfMatch=etag)
    except ClientError as e:
        if e.response['Error']['Code'] == 'DistributionNotDisabled':
            return steps.retryable(f"CloudFront distribution {distribution_id} is not disabled yet")
        raise
    return steps.completed(f"Deleted CloudFront distribution {distribution_id}")


def find_origin_access_control(cloudfront_client, name):
    """Return the ID of the origin access control with this name, or None."""
    marker = None
    while True:
        kwargs = {'Marker': marker} if marker else {}
        response = cloudfront_client.list_origin_access_controls(**kwargs)
        oac_list = response.get('OriginAccessControlList', {})
        for item in oac_list.get('Items', []):
            if item.get('Name') == name:
                return item['Id']
        if not oac_list.get('IsTruncated'):
            return None
        marker = oac_list.get('NextMarker')


def create_origin_access_control(cloudfront_client, name, description=''):
    """
    Create an S3 origin access control (sigv4, always sign), or reuse the one with the same name.
    Returns the OAC ID.
    """
    # CloudFront limits OAC names to 64 characters
    name = name[:64]
    existing = find_origin_access_control(cloudfront_client, name)
    if existing:
        print(f"Using existing origin access control {name}: {existing}")
        return existing

    response = cloudfront_client.create_origin_access_control(
        OriginAccessControlConfig={
            'Name': name,
            'Description': description,
            'SigningProtocol': 'sigv4',
            'SigningBehavior': 'always',
            'OriginAccessControlOriginType': 's3'
        }
    )
    oac_id = response['OriginAccessControl']['Id']
    print(f"Created origin access control {name}: {oac_id}")
    return oac_id


def origin_access_control_exists(cloudfront_client, oac_id):
    try:
        cloudfront_client.get_origin_access_control(Id=oac_id)
        return True
    except ClientError as e:
        if e.response['Error']['Code'] == 'NoSuchOriginAccessControl':
            return False
        raise


def delete_origin_access_control(cloudfront_client, oac_id):
    """Delete an origin access control. Returns a StepResult (RETRYABLE while a distribution uses it)."""
    try:
        etag = cloudfront_client.get_origin_access_control(Id=oac_id)['ETag']
        cloudfront_client.delete_origin_access_control(Id=oac_id, IfMatch=etag)
    except ClientError as e:
        code = e.response['Error']['Code']
        if code == 'NoSuchOriginAccessControl':
            return steps.completed(f"Origin access control {oac_id} already gone")
        if code == 'OriginAccessControlInUse':
            return steps.retryable(f"Origin access control {oac_id} is still used by a distribution")
        raise
    return steps.completed(f"Deleted origin access control {oac_id}")
