#!/usr/bin/env python3
"""
Domain redirects: each source domain gets an S3 redirect bucket and a
CloudFront distribution, all sharing one ACM certificate, so
https://<source>/... answers with a 301/302 to the target domain.

Progress is recorded in .redirect-status-<first source>.json by default.
A source domain whose resources cannot be created is skipped with a warning
and the rest carry on.
"""
import sys

from botocore.exceptions import ClientError

from aws import acm
from aws import cloudfront
from aws import route53
from aws import session as aws_session
from aws import steps
from aws import verify
from aws.config import split_list
from aws.confirm import confirm
from aws.status import StatusStore, StatusFileError
from aws.steps import DeployError
from s3 import s3_bucket
from s3.deploy import print_summary
from . import cloudfront_redirect
from . import s3_redirect

MAX_SOURCE_DOMAINS = 10
REDIRECT_TYPES = ('301', '302')


def default_status_file(source_domains):
    return f".redirect-status-{source_domains[0]}.json"


def domain_step(domain, step):
    return f"{domain}:{step}"


def redirect_step_names(source_domains):
    names = ['hosted_zones']
    names += [domain_step(d, 'bucket') for d in source_domains]
    names.append('certificate')
    names += [domain_step(d, step) for step in ('cloudfront', 'dns') for d in source_domains]
    names += ['wait_for_distributions', 'verification']
    return names


def incomplete_steps(store):
    """Steps (verification excluded) of the recorded source domains that have not completed."""
    names = redirect_step_names(store.get_array('source_domains'))
    return [name for name in names if name != 'verification' and not store.is_step_completed(name)]


def validate_redirect_options(source_domains, target_domain, redirect_type, redirect_path):
    """
    Normalise and check redirect inputs. Raises DeployError on invalid input.
    Returns (source_domains, target_domain, redirect_type, redirect_path).
    """
    sources = [d.rstrip('.').lower() for d in split_list(source_domains)]
    if not sources:
        raise DeployError("at least one source domain is required (--source-domains)")
    if len(sources) > MAX_SOURCE_DOMAINS:
        raise DeployError(f"at most {MAX_SOURCE_DOMAINS} source domains are supported, got {len(sources)}")
    if len(set(sources)) != len(sources):
        raise DeployError(f"duplicate source domains: {', '.join(sources)}")
    if not target_domain:
        raise DeployError("a target domain is required (--target-domain)")
    target = target_domain.rstrip('.').lower()
    if target in sources:
        raise DeployError(f"target domain {target} cannot also be a source domain")
    redirect_type = str(redirect_type or '301')
    if redirect_type not in REDIRECT_TYPES:
        raise DeployError(f"redirect type must be 301 or 302, got {redirect_type}")
    if redirect_path and not redirect_path.startswith('/'):
        redirect_path = '/' + redirect_path
    return sources, target, redirect_type, redirect_path or None


class RedirectContext:
    """Options, AWS clients and status record for one redirect run."""

    def __init__(self, aws, store, source_domains, target_domain, redirect_type, redirect_path, region):
        self.aws = aws
        self.store = store
        self.source_domains = source_domains
        self.target_domain = target_domain
        self.redirect_type = redirect_type
        self.redirect_path = redirect_path
        self.region = region
        self.skipped = []

    @property
    def active_domains(self):
        return [d for d in self.source_domains if d not in self.skipped]

    @property
    def redirect_to(self):
        return f"{self.redirect_type} https://{self.target_domain}{self.redirect_path or ''}"

    def zone_for(self, domain):
        return (self.store.get('hosted_zones') or {}).get(domain)


def _hosted_zones(ctx):
    zones = {}
    for domain in ctx.source_domains + [ctx.target_domain]:
        zone_id, zone_name = route53.resolve_hosted_zone(ctx.aws.route53, domain)
        print(f"  {domain}: {zone_name} ({zone_id})")
        zones[domain] = zone_id
    return steps.completed(hosted_zones=zones, target_zone_id=zones[ctx.target_domain])


def _hosted_zones_exist(ctx):
    zones = ctx.store.get('hosted_zones') or {}
    wanted = ctx.source_domains + [ctx.target_domain]
    if any(domain not in zones for domain in wanted):
        return False
    return all(route53.hosted_zone_exists(ctx.aws.route53, zone_id) for zone_id in set(zones.values()))


def _bucket(ctx, domain):
    bucket_name = ctx.store.domain_record(domain).get('bucket_name') or s3_bucket.bucket_name_for(domain, 'redirect')
    s3_bucket.create_s3_bucket(ctx.aws.s3, bucket_name, ctx.region)
    s3_redirect.configure_redirect_bucket(
        ctx.aws.s3, bucket_name, ctx.target_domain, ctx.redirect_type, ctx.redirect_path
    )
    ctx.store.update_domain_record(
        domain, zone_id=ctx.zone_for(domain), bucket_name=bucket_name, redirect_to=ctx.redirect_to
    )
    return steps.completed()


def _bucket_exists(ctx, domain):
    record = ctx.store.domain_record(domain)
    if record.get('redirect_to') != ctx.redirect_to:
        return False
    return s3_bucket.bucket_exists(ctx.aws.s3, record.get('bucket_name'))


def _supersede_certificate(store, cert_arn):
    """Keep a replaced certificate on record so removal still deletes it and its validation CNAMEs."""
    superseded = store.get_array('superseded_certificates')
    if any(entry.get('certificate_arn') == cert_arn for entry in superseded):
        return
    superseded.append({
        'certificate_arn': cert_arn,
        'certificate_validation_records': store.get('certificate_validation_records') or [],
    })
    store.set_array('superseded_certificates', superseded)
    print(f"Note: certificate {cert_arn} is superseded and will be deleted by remove-redirect")


def _certificate(ctx):
    names = ctx.active_domains + [ctx.target_domain]
    previous_arn = ctx.store.get('certificate_arn')
    existing_arn = previous_arn
    if existing_arn and ctx.store.get('certificate_domains') != names:
        print(f"Note: domain list changed since certificate {existing_arn} was requested; requesting a new one")
        existing_arn = None
    result = acm.issue_certificate(ctx.aws.acm, ctx.aws.route53, names, ctx.zone_for, existing_arn=existing_arn)
    new_arn = result.outputs.get('certificate_arn')
    if new_arn:
        result.outputs['certificate_domains'] = names
        if previous_arn and new_arn != previous_arn:
            if acm.get_certificate_status(ctx.aws.acm, previous_arn) is not None:
                _supersede_certificate(ctx.store, previous_arn)
            result.outputs.setdefault('certificate_validation_records', [])
    return result


def _certificate_exists(ctx):
    if ctx.store.get('certificate_domains') != ctx.active_domains + [ctx.target_domain]:
        return False
    return acm.get_certificate_status(ctx.aws.acm, ctx.store.get('certificate_arn')) == 'ISSUED'


def _distribution(ctx, domain):
    record = ctx.store.domain_record(domain)
    certificate_arn = ctx.store.get('certificate_arn')
    distribution_id = record.get('distribution_id')
    if distribution_id and cloudfront.distribution_exists(ctx.aws.cloudfront, distribution_id):
        distribution_domain = record['distribution_domain']
        print(f"{domain}: keeping CloudFront distribution {distribution_id}")
    else:
        distribution_domain, distribution_id = cloudfront_redirect.create_redirect_distribution(
            ctx.aws.cloudfront, record['bucket_name'], ctx.region, domain, certificate_arn
        )
    # A kept or reused distribution may still serve a superseded certificate
    cloudfront.update_viewer_certificate(ctx.aws.cloudfront, distribution_id, certificate_arn)
    ctx.store.update_domain_record(
        domain, distribution_id=distribution_id, distribution_domain=distribution_domain,
        certificate_arn=certificate_arn,
    )
    return steps.completed(f"{domain}: CloudFront {distribution_id} ({distribution_domain})")


def _distribution_exists(ctx, domain):
    record = ctx.store.domain_record(domain)
    if record.get('certificate_arn') != ctx.store.get('certificate_arn'):
        return False
    return cloudfront.distribution_exists(ctx.aws.cloudfront, record.get('distribution_id'))


def _dns(ctx, domain):
    record = ctx.store.domain_record(domain)
    route53.upsert_alias_records(ctx.aws.route53, ctx.zone_for(domain), domain, record['distribution_domain'])
    return steps.completed()


def _wait_for_distributions(ctx):
    waiting = []
    for domain in ctx.active_domains:
        distribution_id = ctx.store.domain_record(domain).get('distribution_id')
        print(f"  {domain}: {distribution_id}")
        if not cloudfront.wait_for_cloudfront_deployment(ctx.aws.cloudfront, distribution_id):
            waiting.append(domain)
    if waiting:
        return steps.timed_out(f"CloudFront distributions still deploying for: {', '.join(waiting)}")
    return steps.completed()


def _verification(ctx):
    failed = []
    for domain in ctx.active_domains:
        result = verify.verify_redirect(domain, ctx.target_domain, ctx.redirect_type, ctx.redirect_path)
        if not result.ok:
            failed.append(domain)
    if failed:
        return steps.advisory(f"Redirects not answering yet for: {', '.join(failed)}; DNS or CloudFront may still be propagating")
    return steps.completed("All redirects verified")


def _run_domain_step(ctx, domain, step, action, exists, dependents=()):
    """Run a per-domain step; a failure skips the domain instead of aborting the run."""
    name = domain_step(domain, step)
    try:
        result = steps.run_step(
            ctx.store, name, lambda: action(ctx, domain), exists=lambda: exists(ctx, domain),
            dependents=dependents,
        )
    except (ClientError, DeployError) as e:
        print(f"Warning: {name} failed: {e}")
        print(f"  Skipping {domain}; the other domains continue.")
        ctx.skipped.append(domain)
        return False
    if not result.ok:
        ctx.skipped.append(domain)
        return False
    return True


def _provision(ctx):
    """Run every step in order. Returns False if the run stopped early."""
    store = ctx.store
    aws = ctx.aws

    print("\n=== Hosted Zones ===")
    steps.run_step(store, 'hosted_zones', lambda: _hosted_zones(ctx), exists=lambda: _hosted_zones_exist(ctx))

    print("\n=== Redirect Buckets ===")
    for domain in ctx.source_domains:
        _run_domain_step(ctx, domain, 'bucket', _bucket, _bucket_exists)
    if not ctx.active_domains:
        print("Error: no redirect bucket could be created")
        return False

    print("\n=== Certificate ===")
    result = steps.run_step(store, 'certificate', lambda: _certificate(ctx), exists=lambda: _certificate_exists(ctx))
    if not result.ok:
        return False

    print("\n=== CloudFront Distributions ===")
    for domain in ctx.active_domains:
        _run_domain_step(
            ctx, domain, 'cloudfront', _distribution, _distribution_exists,
            dependents=('wait_for_distributions',),
        )

    print("\n=== DNS ===")
    for domain in ctx.active_domains:
        _run_domain_step(
            ctx, domain, 'dns', _dns,
            lambda c, d: route53.alias_records_exist(
                aws.route53, c.zone_for(d), d, store.domain_record(d).get('distribution_domain')
            )
        )
    if not ctx.active_domains:
        return False

    print("\n=== Wait For Distributions ===")
    result = steps.run_step(store, 'wait_for_distributions', lambda: _wait_for_distributions(ctx))
    if not result.ok:
        return False

    print("\n=== Verification ===")
    steps.run_step(store, 'verification', lambda: _verification(ctx))
    return True


def describe_plan(existing, sources, target, redirect_type, redirect_path, region, status_file):
    """Lines shown before provisioning starts."""
    lines = [f"  Redirect: {', '.join(sources)} -> https://{target}{redirect_path or ''} ({redirect_type})"]
    for domain in sources:
        bucket_name = existing.domain_record(domain).get('bucket_name') or s3_bucket.bucket_name_for(domain, 'redirect')
        lines.append(f"  {domain}: S3 bucket {bucket_name} ({region}), CloudFront distribution, Route53 A/AAAA alias records")
    lines.append(f"  Shared ACM certificate (us-east-1) for: {', '.join(sources + [target])}")
    if existing.data:
        lines.append(f"  Resuming {status_file}")
    else:
        lines.append(f"  New status file: {status_file}")
    return lines


def deploy_redirect(config_dict=None, confirm_callback=None, **kwargs):
    """
    Provision (or resume provisioning of) redirects from source domains to a target domain.

    Recognised options: source_domains (list or comma separated string),
    target_domain, redirect_type ('301' default, or '302'), redirect_path,
    profile, region, status_file, yes.

    Returns the StatusStore; its 'skipped_domains' lists domains left out of this run.
    Fatal errors exit with status 1; a declined confirmation exits with status 0.
    """
    params = {**(config_dict or {}), **kwargs}
    region = params.get('region') or 'us-east-1'

    try:
        sources, target, redirect_type, redirect_path = validate_redirect_options(
            params.get('source_domains'), params.get('target_domain'),
            params.get('redirect_type'), params.get('redirect_path'),
        )
    except DeployError as e:
        print(f"Error: {e}")
        sys.exit(1)

    status_file = params.get('status_file') or default_status_file(sources)
    print(f"Starting redirect deployment: {', '.join(sources)} -> {target} ({redirect_type})")
    print(f"  Status file: {status_file}")

    try:
        session = aws_session.create_session(params.get('profile'), region)
        identity = aws_session.check_credentials(session)

        existing = StatusStore.load(status_file)
        plan = describe_plan(existing, sources, target, redirect_type, redirect_path, region, status_file)
        if not confirm(plan, title=f"DEPLOY: redirect {', '.join(sources)} -> {target}",
                       question="Proceed with deployment? (y/n):",
                       yes=bool(params.get('yes')), confirm_callback=confirm_callback):
            print("Aborted.")
            sys.exit(0)

        store = StatusStore.create(status_file, target_domain=target, region=region)
        known = store.get_array('source_domains')
        store.update({
            'source_domains': known + [d for d in sources if d not in known],
            'target_domain': target,
            'redirect_type': redirect_type,
            'redirect_path': redirect_path,
            'skipped_domains': [],
        })
        if not store.has('account_id'):
            store.set('account_id', identity['Account'])

        ctx = RedirectContext(
            aws_session.AwsClients(session), store, sources, target, redirect_type, redirect_path, region
        )
        if not _provision(ctx):
            print("\nStopping: the run did not reach the end; re-run the same command to resume.")
        store.set_array('skipped_domains', ctx.skipped)
    except (DeployError, StatusFileError) as e:
        print(f"Error: {e}")
        sys.exit(1)
    except ClientError as e:
        print(f"Error: AWS request failed: {e}")
        print("  Completed steps are saved; fix the problem and run the same command again.")
        sys.exit(1)

    print_summary(store, redirect_step_names(sources), f"Redirect status: {', '.join(sources)} -> {target}")
    for domain in sources:
        record = store.domain_record(domain)
        if domain in ctx.skipped:
            print(f"  https://{domain} -> SKIPPED")
        elif record.get('distribution_domain'):
            print(f"  https://{domain} -> https://{target}{redirect_path or ''} (via {record['distribution_domain']})")
    print("=" * 80 + "\n")
    return store
