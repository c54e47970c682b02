#!/usr/bin/env python3
"""
Static site provisioning: Route53 -> CloudFront (origin access control) -> private S3 bucket.

Every step is recorded in the status file (.deploy-status-<domain>.json by
default) so the command can be re-run after a failure or timeout and picks up
where it stopped.
"""
import sys

from botocore.exceptions import ClientError

from aws import acm
from aws import cloudfront
from aws import route53
from aws import session as aws_session
from aws import steps
from aws import verify
from aws.confirm import confirm
from aws.status import StatusStore, StatusFileError
from aws.steps import DeployError
from . import cloudfront_s3
from . import s3_bucket

STATIC_SITE_STEPS = [
    'hosted_zone',
    's3_bucket',
    'certificate',
    'oac',
    'cloudfront',
    'bucket_policy',
    'dns',
    'content',
    'invalidate_cache',
    'wait_for_distribution',
    'verification',
]

# Steps that must run again when the resource of the key step is (re)created
STEP_DEPENDENTS = {
    's3_bucket': ('bucket_policy', 'content', 'invalidate_cache'),
    'cloudfront': ('bucket_policy', 'dns', 'invalidate_cache', 'wait_for_distribution'),
}


def default_status_file(domain):
    return f".deploy-status-{domain}.json"


class SiteContext:
    """Everything a static-site step needs: options, AWS clients and the status file."""

    def __init__(self, aws, store, domain, region):
        self.aws = aws
        self.store = store
        self.domain = domain
        self.region = region


def _hosted_zone(ctx):
    zone_id, zone_name = route53.resolve_hosted_zone(ctx.aws.route53, ctx.domain)
    return steps.completed(hosted_zone_id=zone_id, zone_name=zone_name)


def _s3_bucket(ctx):
    bucket_name = ctx.store.get('bucket_name') or s3_bucket.bucket_name_for(ctx.domain, 'static-site')
    s3_bucket.create_s3_bucket(ctx.aws.s3, bucket_name, ctx.region)
    s3_bucket.configure_static_site_bucket(ctx.aws.s3, bucket_name)
    return steps.completed(f"S3 bucket ready: {bucket_name}", bucket_name=bucket_name)


def _certificate(ctx):
    zone_id = ctx.store.get('hosted_zone_id')
    return acm.issue_certificate(
        ctx.aws.acm, ctx.aws.route53, [ctx.domain],
        lambda name: zone_id,
        existing_arn=ctx.store.get('certificate_arn'),
    )


def _oac(ctx):
    oac_id = cloudfront.create_origin_access_control(
        ctx.aws.cloudfront, f"{ctx.domain}-oac", description=f"Origin access control for {ctx.domain}"
    )
    return steps.completed(oac_id=oac_id)


def _cloudfront(ctx):
    distribution_domain, distribution_id = cloudfront_s3.create_cloudfront_distribution_for_s3(
        ctx.aws.cloudfront,
        ctx.store.get('bucket_name'),
        ctx.region,
        ctx.domain,
        ctx.store.get('certificate_arn'),
        ctx.store.get('oac_id'),
    )
    return steps.completed(distribution_id=distribution_id, distribution_domain=distribution_domain)


def _bucket_policy(ctx):
    distribution_id = ctx.store.get('distribution_id')
    distribution_arn = f"arn:aws:cloudfront::{ctx.store.get('account_id')}:distribution/{distribution_id}"
    bucket_name = ctx.store.get('bucket_name')
    s3_bucket.put_bucket_policy(ctx.aws.s3, bucket_name, s3_bucket.cloudfront_read_policy(bucket_name, distribution_arn))
    return steps.completed(bucket_policy_distribution_id=distribution_id)


def _dns(ctx):
    route53.upsert_alias_records(
        ctx.aws.route53, ctx.store.get('hosted_zone_id'), ctx.domain, ctx.store.get('distribution_domain')
    )
    return steps.completed()


def _content(ctx):
    uploaded = s3_bucket.put_placeholder_content(ctx.aws.s3, ctx.store.get('bucket_name'), ctx.domain)
    return steps.completed(f"Placeholder content: {', '.join(uploaded) or 'nothing to upload'}")


def _invalidate_cache(ctx):
    invalidation_id = cloudfront.invalidate_cloudfront_cache(ctx.aws.cloudfront, ctx.store.get('distribution_id'))
    return steps.completed(invalidation_id=invalidation_id)


def _wait_for_distribution(ctx):
    distribution_id = ctx.store.get('distribution_id')
    if cloudfront.wait_for_cloudfront_deployment(ctx.aws.cloudfront, distribution_id):
        return steps.completed()
    return steps.timed_out(f"CloudFront distribution {distribution_id} is still deploying")


def _verification(ctx):
    return verify.verify_site(ctx.domain)


def _step_table(ctx):
    """(name, action, exists) for every step, in order."""
    store = ctx.store
    aws = ctx.aws
    return [
        ('hosted_zone', _hosted_zone,
         lambda: route53.hosted_zone_exists(aws.route53, store.get('hosted_zone_id'))),
        ('s3_bucket', _s3_bucket,
         lambda: s3_bucket.bucket_exists(aws.s3, store.get('bucket_name'))),
        ('certificate', _certificate,
         lambda: acm.get_certificate_status(aws.acm, store.get('certificate_arn')) == 'ISSUED'),
        ('oac', _oac,
         lambda: cloudfront.origin_access_control_exists(aws.cloudfront, store.get('oac_id'))),
        ('cloudfront', _cloudfront,
         lambda: cloudfront.distribution_exists(aws.cloudfront, store.get('distribution_id'))),
        ('bucket_policy', _bucket_policy,
         lambda: store.get('bucket_policy_distribution_id') == store.get('distribution_id')),
        ('dns', _dns,
         lambda: route53.alias_records_exist(aws.route53, store.get('hosted_zone_id'), ctx.domain, store.get('distribution_domain'))),
        ('content', _content, None),
        ('invalidate_cache', _invalidate_cache, None),
        ('wait_for_distribution', _wait_for_distribution, None),
        ('verification', _verification, None),
    ]


def incomplete_steps(store, step_names=STATIC_SITE_STEPS):
    """Steps (verification excluded) that have not completed."""
    return [name for name in step_names if name != 'verification' and not store.is_step_completed(name)]


def print_summary(store, step_names, title):
    print("\n" + "=" * 80)
    print(title)
    print("=" * 80)
    for name in step_names:
        status = store.step_status(name) or 'not started'
        print(f"  {name:<36} {status}")


def describe_plan(existing, domain, region, status_file):
    """Lines shown before provisioning starts."""
    bucket_name = existing.get('bucket_name') or s3_bucket.bucket_name_for(domain, 'static-site')
    done = [name for name in STATIC_SITE_STEPS if existing.is_step_completed(name)]
    lines = [
        f"  Domain: {domain}",
        f"  S3 bucket: {bucket_name} ({region})",
        f"  Origin access control: {domain}-oac",
        "  ACM certificate (us-east-1), CloudFront distribution, Route53 A/AAAA alias records",
    ]
    if done:
        lines.append(f"  Resuming {status_file}: {len(done)} of {len(STATIC_SITE_STEPS)} steps already completed")
    else:
        lines.append(f"  New status file: {status_file}")
    return lines


def deploy_static_site(config_dict=None, confirm_callback=None, **kwargs):
    """
    Provision (or resume provisioning of) a static site for a domain.

    If config_dict is provided it is merged with kwargs (kwargs win).
    Recognised options: domain, profile, region, status_file, yes.

    Args:
        confirm_callback: If provided, called with the plan lines instead of
            prompting stdin; should return True to proceed.

    Returns the StatusStore for the deployment. Fatal errors exit with status 1;
    a declined confirmation exits with status 0.
    """
    params = {**(config_dict or {}), **kwargs}
    domain = params.get('domain')
    region = params.get('region') or 'us-east-1'
    profile = params.get('profile')

    if not domain:
        print("Error: 'domain' parameter is required")
        sys.exit(1)
    domain = domain.rstrip('.').lower()
    status_file = params.get('status_file') or default_status_file(domain)

    print(f"Starting static site deployment for {domain}...")
    print(f"  Status file: {status_file}")

    try:
        session = aws_session.create_session(profile, region)
        identity = aws_session.check_credentials(session)

        existing = StatusStore.load(status_file)
        if existing.data and existing.get('domain') != domain:
            raise DeployError(f"Status file {status_file} belongs to {existing.get('domain')}, not {domain}")
        if not confirm(describe_plan(existing, domain, region, status_file),
                       title=f"DEPLOY: static site for {domain}",
                       question="Proceed with deployment? (y/n):",
                       yes=bool(params.get('yes')), confirm_callback=confirm_callback):
            print("Aborted.")
            sys.exit(0)

        store = StatusStore.create(status_file, domain=domain, region=region)
        if not store.has('account_id'):
            store.set('account_id', identity['Account'])

        ctx = SiteContext(aws_session.AwsClients(session), store, domain, region)
        for name, action, exists in _step_table(ctx):
            print(f"\n=== {name.replace('_', ' ').title()} ===")
            result = steps.run_step(
                store, name, lambda action=action: action(ctx), exists=exists,
                dependents=STEP_DEPENDENTS.get(name, ()),
            )
            if not result.ok and name != 'verification':
                print(f"\nStopping: step '{name}' did not complete ({result.outcome.value}).")
                break
    except (DeployError, StatusFileError) as e:
        print(f"Error: {e}")
        sys.exit(1)
    except ClientError as e:
        print(f"Error: AWS request failed: {e}")
        print("  Completed steps are saved; fix the problem and run the same command again.")
        sys.exit(1)

    print_summary(store, STATIC_SITE_STEPS, f"Deployment status for {domain}")
    print(f"\nWebsite URL: https://{domain}")
    if store.get('distribution_domain'):
        print(f"CloudFront URL: https://{store.get('distribution_domain')}")
    print(f"S3 Bucket: https://s3.console.aws.amazon.com/s3/buckets/{store.get('bucket_name')}?region={region}")
    print("=" * 80 + "\n")
    return store
