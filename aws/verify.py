#!/usr/bin/env python3
"""
Post-deploy checks: DNS resolution and HTTP(S) responses.

These are best effort. DNS and CloudFront propagation routinely take longer
than a deploy run, so failures come back as advisory results, never errors.
"""
import socket
import time
import urllib.error
import urllib.request

from . import steps

USER_AGENT = 'Deployment-Test/1.0'


class _NoRedirect(urllib.request.HTTPRedirectHandler):
    def redirect_request(self, req, fp, code, msg, headers, newurl):
        return None


_opener = urllib.request.build_opener(_NoRedirect)


def resolve_dns(domain):
    """Return the sorted addresses domain resolves to, or [] when it does not resolve."""
    try:
        infos = socket.getaddrinfo(domain, 443, proto=socket.IPPROTO_TCP)
    except socket.gaierror:
        return []
    return sorted({info[4][0] for info in infos})


def fetch(url, method='GET', timeout=30):
    """
    Request url without following redirects.
    Returns (status_code, headers), or (None, reason) when no HTTP response arrived.
    """
    req = urllib.request.Request(url, method=method)
    req.add_header('User-Agent', USER_AGENT)
    try:
        with _opener.open(req, timeout=timeout) as response:
            return response.getcode(), response.headers
    except urllib.error.HTTPError as e:
        return e.code, e.headers
    except (urllib.error.URLError, socket.timeout, ConnectionError) as e:
        return None, getattr(e, 'reason', e)


def _retry(check, attempts, interval):
    result = None
    for attempt in range(1, attempts + 1):
        result = check()
        if result.ok:
            return result
        if attempt < attempts:
            time.sleep(interval)
    return result


def verify_site(domain, attempts=3, interval=10):
    """Check domain resolves and https://domain answers 200."""
    print(f"Checking DNS for {domain}...")
    addresses = resolve_dns(domain)
    if not addresses:
        return steps.advisory(f"{domain} does not resolve yet; DNS propagation can take several minutes")
    print(f"  ✓ {domain} resolves to {', '.join(addresses[:4])}")

    url = f"https://{domain}"

    def check():
        status, detail = fetch(url)
        if status == 200:
            print(f"  ✓ {url} - Status: 200")
            return steps.completed(f"{url} is serving content")
        if status is None:
            print(f"  ✗ {url} - {detail}")
        else:
            print(f"  ⚠ {url} - Status: {status}")
        return steps.advisory(f"{url} returned {status or detail}; CloudFront may still be deploying")

    return _retry(check, attempts, interval)


def verify_redirect(source_domain, target_domain, redirect_type='301', redirect_path=None, attempts=3, interval=10):
    """Check https://source_domain answers with a redirect whose Location is on target_domain."""
    url = f"https://{source_domain}"
    expected_codes = {int(redirect_type), 301, 302} if redirect_path else {int(redirect_type)}

    def check():
        status, detail = fetch(url, method='HEAD')
        location = detail.get('Location', '') if status is not None and detail is not None else ''
        if status in expected_codes and f"//{target_domain}" in location:
            print(f"  ✓ {url} -> {status} {location}")
            return steps.completed(f"{source_domain} redirects to {location}")
        if status == 200 and redirect_path:
            # Meta-refresh page served for a redirect path
            print(f"  ✓ {url} - Status: 200 (meta refresh to {target_domain}{redirect_path})")
            return steps.completed(f"{source_domain} serves the redirect page")
        if status is None:
            print(f"  ✗ {url} - {detail}")
        else:
            print(f"  ⚠ {url} - Status: {status} Location: {location or '-'}")
        return steps.advisory(f"{url} did not redirect to {target_domain} yet; DNS or CloudFront may still be propagating")

    return _retry(check, attempts, interval)
