#!/usr/bin/env python3
"""
boto3 session creation and the credentials check run before any provisioning.
"""
import boto3
from botocore.exceptions import ClientError, NoCredentialsError, ProfileNotFound

from .steps import DeployError

# CloudFront only accepts ACM certificates from us-east-1
ACM_REGION = 'us-east-1'


def create_session(profile=None, region='us-east-1'):
    """Return a boto3 Session for the profile (ambient credentials when profile is None)."""
    try:
        if profile and profile != 'default':
            return boto3.Session(profile_name=profile, region_name=region)
        return boto3.Session(region_name=region)
    except ProfileNotFound as e:
        raise DeployError(f"{e}. Configure it with 'aws configure --profile {profile}'.")


def acm_client(session):
    return session.client('acm', region_name=ACM_REGION)


class AwsClients:
    """The service clients a deployment needs, created once per run."""

    def __init__(self, session):
        self.session = session
        self.s3 = session.client('s3')
        self.route53 = session.client('route53')
        self.cloudfront = session.client('cloudfront')
        self.acm = acm_client(session)


def check_credentials(session):
    """
    Verify the session has usable credentials.

    Returns the STS caller identity ({'Account', 'Arn', 'UserId'}).
    Raises DeployError with the remedy when credentials are missing or rejected.
    """
    remedy = (
        "Export AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY, "
        "or pass --profile with a profile configured via 'aws configure'."
    )
    try:
        identity = session.client('sts').get_caller_identity()
    except (NoCredentialsError, ProfileNotFound) as e:
        raise DeployError(f"AWS credentials not available ({e}). {remedy}")
    except ClientError as e:
        raise DeployError(f"AWS rejected the credentials ({e.response['Error']['Code']}). {remedy}")
    return identity


def login(profile=None, region='us-east-1'):
    """Check credentials for the given profile and print who we are."""
    session = create_session(profile, region)
    identity = check_credentials(session)
    print("AWS credentials are valid")
    print(f"  Account: {identity.get('Account')}")
    print(f"  ARN:     {identity.get('Arn')}")
    print(f"  User ID: {identity.get('UserId')}")
    return identity
