#!/usr/bin/env python3
"""
Teardown of a static site deployment recorded in its status file.
Removes: Route53 alias records, CloudFront distribution, origin access control,
ACM certificate (and its validation records), S3 bucket and contents.
"""
import sys

from botocore.exceptions import ClientError

from aws import acm
from aws import cloudfront
from aws import route53
from aws import session as aws_session
from aws import steps
from aws import teardown
from aws.status import StatusStore, StatusFileError
from aws.steps import DeployError
from . import s3_bucket
from .deploy import default_status_file


def describe_resources(store):
    """Human readable list of what the record says exists."""
    lines = []
    domain = store.get('domain')
    if store.get('hosted_zone_id') and store.get('distribution_domain'):
        lines.append(f"  - Route53 A/AAAA alias: {domain} -> {store.get('distribution_domain')}")
    if store.get('distribution_id'):
        lines.append(f"  - CloudFront distribution: {store.get('distribution_id')} (alias: {domain})")
    if store.get('oac_id'):
        lines.append(f"  - Origin access control: {store.get('oac_id')}")
    if store.get('certificate_arn'):
        lines.append(f"  - ACM certificate: {store.get('certificate_arn')}")
        for record in store.get('certificate_validation_records') or []:
            lines.append(f"  - Validation record: {record.get('name')}")
    if store.get('bucket_name'):
        lines.append(f"  - S3 bucket: {store.get('bucket_name')} (and all objects)")
    return lines


def _remove_certificate(acm_client, route53_client, store):
    result = acm.delete_certificate(acm_client, store.get('certificate_arn'))
    if result.outcome == steps.Outcome.COMPLETED:
        deleted = route53.delete_validation_records(route53_client, store.get('certificate_validation_records') or [])
        if deleted:
            print(f"  Deleted {deleted} validation record(s)")
    return result


def destroy_static_site(config_dict=None, confirm_callback=None, **kwargs):
    """
    Tear down everything recorded for a static site.

    Recognised options: domain, status_file, profile, yes.
    confirm_callback: if provided, called with the list of resource descriptions;
    should return True to proceed.

    Returns True when every resource is gone (removal_completed is recorded),
    False when something was left for manual cleanup.
    """
    params = {**(config_dict or {}), **kwargs}
    domain = params.get('domain')
    status_file = params.get('status_file') or (default_status_file(domain) if domain else None)
    yes = bool(params.get('yes'))

    if not status_file:
        print("Error: --domain or --status-file is required")
        sys.exit(1)

    try:
        store = StatusStore.load(status_file, required=True)
        teardown.check_previous_removal(store, yes=yes, confirm_callback=confirm_callback)

        lines = describe_resources(store)
        if not lines:
            print(f"Note: {status_file} records no resources to remove")
        if not teardown.confirm_destruction(lines, yes=yes, confirm_callback=confirm_callback):
            print("Aborted.")
            sys.exit(0)

        session = aws_session.create_session(params.get('profile'), store.get('region') or 'us-east-1')
        aws_session.check_credentials(session)
        aws = aws_session.AwsClients(session)
        run = teardown.Teardown(store)
        domain = store.get('domain')

        print("\n=== Tearing down ===\n")

        if store.get('hosted_zone_id') and store.get('distribution_domain'):
            print(f"Deleting Route53 alias records for {domain}...")
            run.remove('dns', lambda: route53.delete_alias_records(
                aws.route53, store.get('hosted_zone_id'), domain, store.get('distribution_domain')
            ), dependents=['verification'])

        distribution_gone = True
        if store.get('distribution_id'):
            print("Disabling and deleting CloudFront distribution...")
            distribution_gone = run.remove('cloudfront', lambda: cloudfront.disable_and_delete_distribution(
                aws.cloudfront, store.get('distribution_id')
            ), dependents=['bucket_policy', 'invalidate_cache', 'wait_for_distribution']).ok

        if store.get('oac_id'):
            print("Deleting origin access control...")
            run.remove('oac', lambda: cloudfront.delete_origin_access_control(aws.cloudfront, store.get('oac_id')))

        if store.get('certificate_arn'):
            print("Deleting ACM certificate...")
            run.remove('certificate', lambda: _remove_certificate(aws.acm, aws.route53, store))

        if store.get('bucket_name') and not distribution_gone:
            # The distribution still serves from the bucket
            run.defer('s3_bucket', f"{store.get('bucket_name')} left until the CloudFront distribution is deleted")
        elif store.get('bucket_name'):
            print(f"Deleting S3 bucket {store.get('bucket_name')}...")
            run.remove('s3_bucket', lambda: s3_bucket.empty_and_delete_bucket(
                aws.s3, store.get('bucket_name')
            ), dependents=['content'])

        return run.finish()
    except (DeployError, StatusFileError) as e:
        print(f"Error: {e}")
        sys.exit(1)
    except ClientError as e:
        print(f"Error: AWS request failed: {e}")
        sys.exit(1)
