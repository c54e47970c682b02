#!/usr/bin/env python3
"""
Teardown of a redirect deployment: per source domain the alias records,
distribution and redirect bucket, then the shared certificate.
"""
import sys

from botocore.exceptions import ClientError

from aws import acm
from aws import cloudfront
from aws import route53
from aws import session as aws_session
from aws import steps
from aws import teardown
from aws.config import split_list
from aws.status import StatusStore, StatusFileError
from aws.steps import DeployError
from s3 import s3_bucket
from .deploy import default_status_file, domain_step


def describe_resources(store, domains):
    lines = []
    for domain in domains:
        record = store.domain_record(domain)
        if record.get('distribution_domain'):
            lines.append(f"  - Route53 A/AAAA alias: {domain} -> {record['distribution_domain']}")
        if record.get('distribution_id'):
            lines.append(f"  - CloudFront distribution: {record['distribution_id']} (alias: {domain})")
        if record.get('bucket_name'):
            lines.append(f"  - S3 redirect bucket: {record['bucket_name']}")
    if store.get('certificate_arn'):
        lines.append(f"  - ACM certificate: {store.get('certificate_arn')} (shared)")
    for entry in store.get_array('superseded_certificates'):
        lines.append(f"  - ACM certificate: {entry['certificate_arn']} (superseded)")
    return lines


def _remove_domain(run, aws, store, domain, zone_id):
    record = store.domain_record(domain)
    print(f"\n--- {domain} ---")

    if zone_id and record.get('distribution_domain'):
        run.remove(domain_step(domain, 'dns'), lambda: route53.delete_alias_records(
            aws.route53, zone_id, domain, record['distribution_domain']
        ))

    if record.get('distribution_id'):
        result = run.remove(domain_step(domain, 'cloudfront'), lambda: cloudfront.disable_and_delete_distribution(
            aws.cloudfront, record['distribution_id']
        ))
        if not result.ok:
            run.defer(
                domain_step(domain, 'bucket'),
                f"{record.get('bucket_name')} left until the CloudFront distribution is deleted",
            )
            return

    if record.get('bucket_name'):
        run.remove(domain_step(domain, 'bucket'), lambda: s3_bucket.empty_and_delete_bucket(
            aws.s3, record['bucket_name'], drop_website=True
        ))


def _remove_certificate(aws, cert_arn, validation_records):
    result = acm.delete_certificate(aws.acm, cert_arn)
    if result.outcome == steps.Outcome.COMPLETED:
        deleted = route53.delete_validation_records(aws.route53, validation_records)
        if deleted:
            print(f"  Deleted {deleted} validation record(s)")
    return result


def _remove_superseded_certificates(run, aws, store, keep_records):
    """
    Delete certificates replaced when the domain list changed. Validation
    CNAMEs still used by the current certificate (keep_records) are left.
    """
    kept_names = {record['name'] for record in keep_records}
    remaining = []
    for entry in store.get_array('superseded_certificates'):
        records = [r for r in entry.get('certificate_validation_records') or [] if r['name'] not in kept_names]
        result = run.attempt(
            f"superseded certificate {entry['certificate_arn']}",
            lambda: _remove_certificate(aws, entry['certificate_arn'], records),
        )
        if not result.ok:
            remaining.append(entry)
    store.set_array('superseded_certificates', remaining)


def destroy_redirect(config_dict=None, confirm_callback=None, **kwargs):
    """
    Tear down a redirect deployment.

    Recognised options: source_domains (selects the default status file),
    status_file, profile, yes. Every source domain recorded in the status file
    is removed.

    Returns True when everything is gone, False when something was left for manual cleanup.
    """
    params = {**(config_dict or {}), **kwargs}
    sources = [d.rstrip('.').lower() for d in split_list(params.get('source_domains'))]
    status_file = params.get('status_file') or (default_status_file(sources) if sources else None)
    yes = bool(params.get('yes'))

    if not status_file:
        print("Error: --source-domains or --status-file is required")
        sys.exit(1)

    try:
        store = StatusStore.load(status_file, required=True)
        teardown.check_previous_removal(store, yes=yes, confirm_callback=confirm_callback)

        domains = store.get_array('source_domains')
        lines = describe_resources(store, domains)
        if not lines:
            print(f"Note: {status_file} records no resources to remove")
        if not teardown.confirm_destruction(lines, yes=yes, confirm_callback=confirm_callback):
            print("Aborted.")
            sys.exit(0)

        session = aws_session.create_session(params.get('profile'), store.get('region') or 'us-east-1')
        aws_session.check_credentials(session)
        aws = aws_session.AwsClients(session)
        run = teardown.Teardown(store)
        zones = store.get('hosted_zones') or {}

        print("\n=== Tearing down ===")
        for domain in domains:
            zone_id = store.domain_record(domain).get('zone_id') or zones.get(domain)
            _remove_domain(run, aws, store, domain, zone_id)

        for name in ('wait_for_distributions', 'verification'):
            if store.is_step_completed(name):
                store.mark_removed(name)

        current_records = store.get('certificate_validation_records') or []
        if store.get('certificate_arn'):
            print("\nDeleting shared ACM certificate...")
            result = run.remove('certificate', lambda: _remove_certificate(
                aws, store.get('certificate_arn'), current_records
            ))
            if result.ok:
                current_records = []
        if store.get_array('superseded_certificates'):
            print("\nDeleting superseded ACM certificates...")
            _remove_superseded_certificates(run, aws, store, current_records)

        return run.finish()
    except (DeployError, StatusFileError) as e:
        print(f"Error: {e}")
        sys.exit(1)
    except ClientError as e:
        print(f"Error: AWS request failed: {e}")
        sys.exit(1)
