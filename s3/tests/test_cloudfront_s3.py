"""Unit tests for cloudfront_s3 module using mock boto3 client."""
import os
import sys
import pytest

_repo_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
if _repo_root not in sys.path:
    sys.path.insert(0, _repo_root)

from aws.mock_boto3 import MockCloudFrontClient
from s3 import cloudfront_s3

CERT_ARN = "arn:aws:acm:us-east-1:123456789012:certificate/abc-123"


class TestBuildDistributionConfig:
    """Tests for build_distribution_config."""

    @pytest.fixture
    def config(self):
        return cloudfront_s3.build_distribution_config("my-bucket", "us-west-2", "example.com", CERT_ARN, "OAC1")

    def test_origin_uses_oac_and_rest_endpoint(self, config):
        origin = config["Origins"]["Items"][0]
        assert origin["DomainName"] == "my-bucket.s3.us-west-2.amazonaws.com"
        assert origin["OriginAccessControlId"] == "OAC1"
        assert origin["S3OriginConfig"]["OriginAccessIdentity"] == ""

    def test_cache_behavior(self, config):
        behavior = config["DefaultCacheBehavior"]
        assert behavior["ViewerProtocolPolicy"] == "redirect-to-https"
        assert behavior["CachePolicyId"] == cloudfront_s3.CACHING_OPTIMIZED_POLICY_ID
        assert behavior["OriginRequestPolicyId"] == cloudfront_s3.CORS_S3_ORIGIN_REQUEST_POLICY_ID
        assert behavior["Compress"] is True

    def test_error_page_and_tls(self, config):
        error = config["CustomErrorResponses"]["Items"][0]
        assert error["ErrorCode"] == 404
        assert error["ResponsePagePath"] == "/error.html"
        assert config["ViewerCertificate"] == {
            "ACMCertificateArn": CERT_ARN,
            "SSLSupportMethod": "sni-only",
            "MinimumProtocolVersion": "TLSv1.2_2021",
        }
        assert config["PriceClass"] == "PriceClass_100"
        assert config["HttpVersion"] == "http2and3"
        assert config["IsIPV6Enabled"] is True
        assert config["DefaultRootObject"] == "index.html"


class TestCreateCloudfrontDistributionForS3:
    """Tests for create_cloudfront_distribution_for_s3."""

    def test_create_new_distribution(self):
        client = MockCloudFrontClient()
        cf_domain, cf_id = cloudfront_s3.create_cloudfront_distribution_for_s3(
            client, "my-bucket", "us-east-1", "app.example.com", CERT_ARN, "OAC1"
        )
        assert cf_id is not None
        assert "cloudfront.net" in cf_domain
        assert len(client.state["distributions"]) == 1
        dist = client.state["distributions"][cf_id]
        assert dist["Config"]["Aliases"]["Items"] == ["app.example.com"]

    def test_use_existing_distribution_same_domain_alias(self):
        client = MockCloudFrontClient()
        first = cloudfront_s3.create_cloudfront_distribution_for_s3(
            client, "my-bucket", "us-east-1", "app.example.com", CERT_ARN, "OAC1"
        )
        second = cloudfront_s3.create_cloudfront_distribution_for_s3(
            client, "my-bucket", "us-east-1", "app.example.com", CERT_ARN, "OAC1"
        )
        assert first == second
        assert len(client.state["distributions"]) == 1
