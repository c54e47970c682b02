#!/usr/bin/env python3
"""
AWS Certificate Manager (ACM) certificate management.
CloudFront requires certificates in us-east-1; callers pass an ACM client for that region.
"""
from botocore.exceptions import ClientError

from . import route53
from . import steps

# Statuses from which a certificate can never become ISSUED
DEAD_STATUSES = ('FAILED', 'EXPIRED', 'REVOKED', 'VALIDATION_TIMED_OUT', 'INACTIVE')


def request_certificate(acm_client, domain, alternative_names=None):
    """
    Request a DNS-validated certificate for domain plus any alternative names.
    Returns the certificate ARN.
    """
    params = {
        'DomainName': domain,
        'ValidationMethod': 'DNS',
    }
    # AWS rejects an empty SubjectAlternativeNames list
    if alternative_names:
        params['SubjectAlternativeNames'] = list(alternative_names)
    response = acm_client.request_certificate(**params)
    cert_arn = response['CertificateArn']
    print(f"Certificate requested: {cert_arn}")
    if alternative_names:
        print(f"  Alternative names: {', '.join(alternative_names)}")
    return cert_arn


def get_certificate_status(acm_client, cert_arn):
    """Return the certificate status, or None if the certificate does not exist."""
    try:
        cert = acm_client.describe_certificate(CertificateArn=cert_arn)['Certificate']
    except ClientError as e:
        if e.response['Error']['Code'] == 'ResourceNotFoundException':
            return None
        raise
    return cert.get('Status', '')


def get_certificate_validation_records(acm_client, cert_arn):
    """
    Get the DNS validation records needed for certificate validation.
    Returns a list of {'domain', 'name', 'type', 'value', 'status'} dicts;
    names ACM has not published a record for yet are left out.
    """
    cert = acm_client.describe_certificate(CertificateArn=cert_arn)['Certificate']
    validation_records = []
    for option in cert.get('DomainValidationOptions', []):
        resource_record = option.get('ResourceRecord')
        if resource_record and resource_record.get('Name'):
            validation_records.append({
                'domain': option.get('DomainName'),
                'name': resource_record.get('Name'),
                'type': resource_record.get('Type'),
                'value': resource_record.get('Value'),
                'status': option.get('ValidationStatus', '')
            })
    return validation_records


def wait_for_validation_records(acm_client, cert_arn, domain_names, max_attempts=12, interval=10):
    """
    ACM publishes validation records a few seconds after the request.
    Poll until there is one for every name. Returns the records or None on timeout.
    """
    wanted = set(domain_names)

    def check():
        records = get_certificate_validation_records(acm_client, cert_arn)
        if wanted.issubset({record['domain'] for record in records}):
            return records
        return None

    return steps.poll_until(check, max_attempts, interval, label="Waiting for DNS validation records")


def wait_for_certificate_validation(acm_client, cert_arn, max_attempts=60, interval=30):
    """
    Wait for certificate to be validated and issued.
    Returns 'ISSUED', a failure status such as 'FAILED', or None if still pending after max_attempts.
    """
    print(f"Waiting for certificate validation (up to {max_attempts * interval // 60} minutes)...")

    def check():
        status = get_certificate_status(acm_client, cert_arn)
        if status == 'ISSUED':
            print("Certificate is now issued and ready to use!")
            return status
        if status is None or status in DEAD_STATUSES:
            return status or 'NOT_FOUND'
        return None

    return steps.poll_until(check, max_attempts, interval, label="Certificate status: PENDING_VALIDATION")


def issue_certificate(acm_client, route53_client, domain_names, zone_for_domain, existing_arn=None):
    """
    Certificate step shared by the static-site and redirect flows.

    Requests one certificate covering domain_names (the first is the primary
    name), writes its validation CNAMEs to Route53 and waits for issuance.
    A certificate ARN left by an earlier run is reused while it can still
    be issued.

    Args:
        domain_names: Names to cover; domain_names[0] becomes DomainName.
        zone_for_domain: Callable mapping a name to its hosted zone ID (or None).
        existing_arn: certificate_arn recorded by a previous run, if any.

    Returns a StepResult carrying certificate_arn and, once written,
    certificate_validation_records.
    """
    cert_arn = None
    if existing_arn:
        status = get_certificate_status(acm_client, existing_arn)
        if status == 'ISSUED':
            return steps.completed(f"Certificate already issued: {existing_arn}", certificate_arn=existing_arn)
        if status is not None and status not in DEAD_STATUSES:
            print(f"Resuming validation of certificate {existing_arn} (status: {status})")
            cert_arn = existing_arn
        else:
            print(f"Warning: recorded certificate {existing_arn} is {status or 'gone'}; requesting a new one")

    if cert_arn is None:
        cert_arn = request_certificate(acm_client, domain_names[0], domain_names[1:])

    records = wait_for_validation_records(acm_client, cert_arn, domain_names)
    if records is None:
        return steps.pending(
            f"ACM has not published validation records for {cert_arn} yet",
            certificate_arn=cert_arn,
        )

    records_by_zone = {}
    stored = []
    for record in records:
        zone_id = zone_for_domain(record['domain'])
        if not zone_id:
            return steps.StepResult(
                steps.Outcome.FATAL,
                f"No hosted zone known for certificate name {record['domain']}",
            )
        records_by_zone.setdefault(zone_id, []).append(record)
        stored.append({
            'domain': record['domain'],
            'zone_id': zone_id,
            'name': record['name'],
            'type': record['type'],
            'value': record['value'],
        })
    route53.upsert_validation_records(route53_client, records_by_zone)

    result = wait_for_certificate_validation(acm_client, cert_arn)
    if result == 'ISSUED':
        return steps.completed(
            f"Certificate issued: {cert_arn}",
            certificate_arn=cert_arn,
            certificate_validation_records=stored,
        )
    if result is None:
        return steps.pending(
            f"Certificate {cert_arn} is still pending DNS validation",
            certificate_arn=cert_arn,
            certificate_validation_records=stored,
        )
    return steps.StepResult(steps.Outcome.FATAL, f"Certificate {cert_arn} validation ended with status {result}")


def delete_certificate(acm_client, cert_arn):
    """
    Delete a certificate. Returns a StepResult: COMPLETED when deleted or
    already gone, RETRYABLE while something still uses it.
    """
    try:
        acm_client.delete_certificate(CertificateArn=cert_arn)
    except ClientError as e:
        code = e.response['Error']['Code']
        if code == 'ResourceNotFoundException':
            return steps.completed(f"Certificate {cert_arn} already gone")
        if code == 'ResourceInUseException':
            return steps.retryable(f"Certificate {cert_arn} is still in use (CloudFront may take a few minutes to release it)")
        raise
    return steps.completed(f"Deleted certificate {cert_arn}")
