#!/usr/bin/env python3
"""
S3 buckets that answer every request with a redirect to another domain,
served through the bucket's website endpoint.
"""
import html

from s3 import s3_bucket


def redirect_website_configuration(target_domain, redirect_type='301', redirect_path=None):
    """
    Website configuration for a redirect bucket.

    A plain 301 uses RedirectAllRequestsTo, which preserves the request path.
    A 302, or a fixed redirect path, needs a routing rule since
    RedirectAllRequestsTo always answers 301.
    """
    redirect_type = str(redirect_type or '301')
    if redirect_type == '301' and not redirect_path:
        return {
            'RedirectAllRequestsTo': {
                'HostName': target_domain,
                'Protocol': 'https'
            }
        }

    redirect = {
        'HostName': target_domain,
        'Protocol': 'https',
        'HttpRedirectCode': redirect_type,
    }
    if redirect_path:
        redirect['ReplaceKeyWith'] = redirect_path.lstrip('/')
    return {
        'IndexDocument': {'Suffix': 'index.html'},
        'RoutingRules': [
            {'Redirect': redirect}
        ]
    }


def redirect_page(target_domain, redirect_path=None):
    """Meta-refresh page for clients that land on the bucket index instead of following the rule."""
    url = f"https://{target_domain}{redirect_path or '/'}"
    safe_url = html.escape(url, quote=True)
    return (
        "<!DOCTYPE html>\n<html lang=\"en\">\n<head>\n"
        "    <meta charset=\"UTF-8\">\n"
        f"    <meta http-equiv=\"refresh\" content=\"0; url={safe_url}\">\n"
        f"    <link rel=\"canonical\" href=\"{safe_url}\">\n"
        f"    <title>Redirecting to {html.escape(target_domain)}</title>\n"
        "</head>\n<body>\n"
        f"    <p>Redirecting to <a href=\"{safe_url}\">{safe_url}</a></p>\n"
        "</body>\n</html>\n"
    )


def configure_redirect_bucket(s3_client, bucket_name, target_domain, redirect_type='301', redirect_path=None):
    """
    Turn a bucket into a redirect website: website configuration, public
    access allowed and a public-read bucket policy.

    Args:
        s3_client: boto3 S3 client
        bucket_name: Existing bucket to configure
        target_domain: Domain every request is sent to
        redirect_type: '301' or '302'
        redirect_path: Optional fixed path on the target (e.g. '/landing')
    """
    s3_client.put_bucket_website(
        Bucket=bucket_name,
        WebsiteConfiguration=redirect_website_configuration(target_domain, redirect_type, redirect_path)
    )
    print(f"Configured {bucket_name} to redirect to https://{target_domain}{redirect_path or ''} ({redirect_type})")

    # The website endpoint only serves public buckets
    s3_bucket.set_public_access_block(s3_client, bucket_name, block=False)
    s3_bucket.put_bucket_policy(s3_client, bucket_name, s3_bucket.public_read_policy(bucket_name))

    if redirect_path:
        s3_client.put_object(
            Bucket=bucket_name,
            Key='index.html',
            Body=redirect_page(target_domain, redirect_path).encode('utf-8'),
            ContentType='text/html'
        )
        print(f"  Uploaded redirect page index.html -> {redirect_path}")
