#!/usr/bin/env python3
"""
CloudFront distribution for a private S3 bucket behind an origin access control.
"""
import time

from aws import cloudfront
from . import s3_bucket

# AWS managed policies
CACHING_OPTIMIZED_POLICY_ID = '658327ea-f89d-4fab-a63d-7e88639e58f6'
CORS_S3_ORIGIN_REQUEST_POLICY_ID = '88a5eaf4-2fd4-4709-b370-b4c650ea3fcf'

ORIGIN_ID = 's3-origin'


def build_distribution_config(bucket_name, s3_region, domain, certificate_arn, oac_id):
    """
    Distribution config for a static site: OAC-signed requests to the bucket's
    REST endpoint, managed CachingOptimized policy, /error.html for 404s.
    """
    return {
        'CallerReference': f"{domain}-{int(time.time())}",
        'Aliases': {
            'Quantity': 1,
            'Items': [domain]
        },
        'DefaultRootObject': 'index.html',
        'Origins': {
            'Quantity': 1,
            'Items': [
                {
                    'Id': ORIGIN_ID,
                    'DomainName': s3_bucket.rest_endpoint(bucket_name, s3_region),
                    'OriginAccessControlId': oac_id,
                    'S3OriginConfig': {
                        'OriginAccessIdentity': ''  # must be empty when an OAC is attached
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
            'OriginRequestPolicyId': CORS_S3_ORIGIN_REQUEST_POLICY_ID,
            'Compress': True
        },
        'CustomErrorResponses': {
            'Quantity': 1,
            'Items': [
                {
                    'ErrorCode': 404,
                    'ResponsePagePath': '/error.html',
                    'ResponseCode': '404',
                    'ErrorCachingMinTTL': 10
                }
            ]
        },
        'Comment': f'Static site {domain} (bucket {bucket_name})',
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


def create_cloudfront_distribution_for_s3(cloudfront_client, bucket_name, s3_region, domain, certificate_arn, oac_id):
    """
    Create (or reuse, by alias) the distribution serving the bucket at domain.

    Args:
        bucket_name: Name of the S3 bucket
        s3_region: Region where the S3 bucket is located
        domain: Domain name for the distribution
        certificate_arn: ACM certificate ARN (us-east-1)
        oac_id: Origin access control ID

    Returns the distribution domain name and ID.
    """
    config = build_distribution_config(bucket_name, s3_region, domain, certificate_arn, oac_id)
    return cloudfront.create_distribution(cloudfront_client, config)
