#!/usr/bin/env python3
"""
Route53 hosted zone lookup, CloudFront alias records and ACM validation records.
"""
from botocore.exceptions import ClientError

from . import steps
from .steps import DeployError

# Fixed hosted zone ID used for every alias record that targets CloudFront
CLOUDFRONT_HOSTED_ZONE_ID = 'Z2FDTNDATAQYW2'

ALIAS_RECORD_TYPES = ('A', 'AAAA')


def _fqdn(name):
    name = name.rstrip('.')
    return name + '.'


def _zone_candidates(domain):
    """The domain itself, then its registrable parent (last two labels)."""
    domain = domain.rstrip('.').lower()
    candidates = [domain]
    parts = domain.split('.')
    if len(parts) > 2:
        candidates.append('.'.join(parts[-2:]))
    return candidates


def find_hosted_zone(route53_client, domain):
    """
    Find the hosted zone for a domain.

    Tries an exact match first, then the last two labels of the domain
    (app.example.com -> example.com).

    Returns (zone_id, zone_name), or (None, None) when neither exists.
    """
    zones = {}
    paginator = route53_client.get_paginator('list_hosted_zones')
    for page in paginator.paginate():
        for zone in page['HostedZones']:
            if zone.get('Config', {}).get('PrivateZone'):
                continue
            zones.setdefault(zone['Name'].rstrip('.').lower(), zone['Id'].split('/')[-1])

    for candidate in _zone_candidates(domain):
        if candidate in zones:
            return zones[candidate], candidate
    return None, None


def resolve_hosted_zone(route53_client, domain):
    """Like find_hosted_zone() but a missing zone is fatal."""
    zone_id, zone_name = find_hosted_zone(route53_client, domain)
    if not zone_id:
        raise DeployError(
            f"No Route53 hosted zone found for {domain} (tried: {', '.join(_zone_candidates(domain))}). "
            "Create the hosted zone in this AWS account first."
        )
    print(f"Found hosted zone for {domain}: {zone_name} (ID: {zone_id})")
    return zone_id, zone_name


def hosted_zone_exists(route53_client, zone_id):
    try:
        route53_client.get_hosted_zone(Id=zone_id)
        return True
    except ClientError as e:
        if e.response['Error']['Code'] == 'NoSuchHostedZone':
            return False
        raise


def get_existing_record(route53_client, hosted_zone_id, record_name, record_type):
    """
    Get existing DNS record if it exists.
    Returns the record set dict or None.
    """
    record_name = _fqdn(record_name)
    response = route53_client.list_resource_record_sets(
        HostedZoneId=hosted_zone_id,
        StartRecordName=record_name,
        StartRecordType=record_type,
        MaxItems='1'
    )
    for record_set in response.get('ResourceRecordSets', []):
        if record_set['Name'].rstrip('.').lower() == record_name.rstrip('.').lower() and record_set['Type'] == record_type:
            return record_set
    return None


def alias_record_set(domain, record_type, distribution_domain):
    return {
        'Name': _fqdn(domain),
        'Type': record_type,
        'AliasTarget': {
            'HostedZoneId': CLOUDFRONT_HOSTED_ZONE_ID,
            'DNSName': _fqdn(distribution_domain),
            'EvaluateTargetHealth': False
        }
    }


def alias_points_to(record_set, distribution_domain):
    """True if record_set is an alias whose target is the given CloudFront hostname."""
    target = (record_set or {}).get('AliasTarget', {}).get('DNSName', '')
    return target.rstrip('.').lower() == distribution_domain.rstrip('.').lower()


def upsert_alias_records(route53_client, hosted_zone_id, domain, distribution_domain, record_types=ALIAS_RECORD_TYPES):
    """
    Point domain at a CloudFront distribution with alias records (A and AAAA by default).
    """
    changes = [
        {'Action': 'UPSERT', 'ResourceRecordSet': alias_record_set(domain, record_type, distribution_domain)}
        for record_type in record_types
    ]
    route53_client.change_resource_record_sets(
        HostedZoneId=hosted_zone_id,
        ChangeBatch={
            'Comment': f"Alias {domain} -> {distribution_domain}",
            'Changes': changes
        }
    )
    print(f"Upserted {'/'.join(record_types)} alias records: {domain} -> {distribution_domain}")


def alias_records_exist(route53_client, hosted_zone_id, domain, distribution_domain):
    """True if the A alias for domain exists and still targets the distribution."""
    existing = get_existing_record(route53_client, hosted_zone_id, domain, 'A')
    return existing is not None and alias_points_to(existing, distribution_domain)


def delete_alias_records(route53_client, hosted_zone_id, domain, distribution_domain, record_types=ALIAS_RECORD_TYPES):
    """
    Delete the alias records for domain, but only those that still point at
    distribution_domain. A record repointed elsewhere is left untouched.

    Returns a StepResult: COMPLETED when nothing is left (deleted or already
    gone), SKIPPED when at least one record was repointed and kept.
    """
    deleted = []
    kept = []
    for record_type in record_types:
        existing = get_existing_record(route53_client, hosted_zone_id, domain, record_type)
        if not existing:
            continue
        if not alias_points_to(existing, distribution_domain):
            current = existing.get('AliasTarget', {}).get('DNSName') or existing.get('ResourceRecords')
            print(f"  Skipping {record_type} record for {domain}: it points at {current}, not {distribution_domain}")
            kept.append(record_type)
            continue
        route53_client.change_resource_record_sets(
            HostedZoneId=hosted_zone_id,
            ChangeBatch={'Changes': [{'Action': 'DELETE', 'ResourceRecordSet': existing}]}
        )
        deleted.append(record_type)

    if kept:
        return steps.skipped(f"DNS record(s) {'/'.join(kept)} for {domain} were repointed and left in place")
    if deleted:
        return steps.completed(f"Deleted {'/'.join(deleted)} alias records for {domain}")
    return steps.completed(f"No alias records for {domain} (already gone)")


def upsert_validation_records(route53_client, records_by_zone, ttl=300):
    """
    Create or update ACM DNS validation records.

    Args:
        records_by_zone: Dict of hosted zone ID -> list of validation record dicts
            ({'name', 'type', 'value'}) as returned by acm.get_certificate_validation_records.
        ttl: TTL in seconds for the CNAME records.
    """
    for zone_id, records in records_by_zone.items():
        changes = []
        seen = set()
        for record in records:
            name = _fqdn(record['name'])
            if name in seen:
                continue
            seen.add(name)
            changes.append({
                'Action': 'UPSERT',
                'ResourceRecordSet': {
                    'Name': name,
                    'Type': record['type'],
                    'TTL': ttl,
                    'ResourceRecords': [{'Value': record['value']}]
                }
            })
        if not changes:
            continue
        route53_client.change_resource_record_sets(
            HostedZoneId=zone_id,
            ChangeBatch={'Comment': 'ACM certificate validation', 'Changes': changes}
        )
        print(f"Upserted {len(changes)} validation record(s) in zone {zone_id}")


def delete_validation_records(route53_client, records):
    """
    Delete validation CNAMEs recorded at certificate time, only where the
    current value still matches what ACM asked for.

    Args:
        records: List of dicts with 'zone_id', 'name', 'type' and 'value'.
    Returns the number of records deleted.
    """
    deleted = 0
    for record in records:
        zone_id = record.get('zone_id')
        if not zone_id:
            continue
        existing = get_existing_record(route53_client, zone_id, record['name'], record['type'])
        if not existing:
            continue
        values = [rr.get('Value') for rr in existing.get('ResourceRecords', [])]
        if record['value'] not in values:
            print(f"  Skipping validation record {record['name']}: value changed")
            continue
        route53_client.change_resource_record_sets(
            HostedZoneId=zone_id,
            ChangeBatch={'Changes': [{'Action': 'DELETE', 'ResourceRecordSet': existing}]}
        )
        print(f"  Deleted validation record {record['name']}")
        deleted += 1
    return deleted
