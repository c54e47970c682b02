#!/usr/bin/env python3
"""
CloudFront distribution in front of a redirect bucket's website endpoint.
"""
import time

from aws import cloudfront
from s3 import s3_bucket
from s3.cloudfront_s3 import CACHING_OPTIMIZED_POLICY_ID

ORIGIN_ID = 's3-website-origin'


def build_redirect_distribution_config(bucket_name, s3_region, source_domain, certificate_arn):
    """
    The website endpoint is HTTP only, so the origin is a custom origin with
    http-only protocol policy; viewers still get HTTPS with the shared certificate.
    """
    return {
        'CallerReference': f"{source_domain}-redirect-{int(time.time())}",
        'Aliases': {
            'Quantity': 1,
            'Items': [source_domain]
        },
        'Origins': {
            'Quantity': 1,
            'Items': [
                {
                    'Id': ORIGIN_ID,
                    'DomainName': s3_bucket.website_endpoint(bucket_name, s3_region),
                    'CustomOriginConfig': {
                        'HTTPPort': 80,
                        'HTTPSPort': 443,
                        'OriginProtocolPolicy': 'http-only',
                        'OriginSslProtocols': {
                            'Quantity': 1,
                            'Items': ['TLSv1.2']
                        }
                    }
                }
            ]
        },
        'DefaultCacheBehavior': {
            'TargetOriginId': ORIGIN_ID,
            'ViewerProtocolPolicy': 'redirect-to-https',
            'AllowedMethods': {
                'Quantity': 2,
                'Items': ['GET', 'HEAD'],
                'CachedMethods': {
                    'Quantity': 2,
                    'Items': ['GET', 'HEAD']
                }
            },
            'CachePolicyId': CACHING_OPTIMIZED_POLICY_ID,
            'Compress': True
        },
        'Comment': f'Redirect {source_domain} (bucket {bucket_name})',
        'Enabled': True,
        'PriceClass': 'PriceClass_100',
        'ViewerCertificate': cloudfront.viewer_certificate(certificate_arn),
        'Restrictions': {
            'GeoRestriction': {
                'RestrictionType': 'none',
                'Quantity': 0
            }
        },
        'HttpVersion': 'http2and3',
        'IsIPV6Enabled': True
    }


def create_redirect_distribution(cloudfront_client, bucket_name, s3_region, source_domain, certificate_arn):
    """Create (or reuse, by alias) the distribution for one redirect domain. Returns (domain, id)."""
    config = build_redirect_distribution_config(bucket_name, s3_region, source_domain, certificate_arn)
    return cloudfront.create_distribution(cloudfront_client, config)
