#!/usr/bin/env python3
"""
In-memory mock boto3 clients with the same interface as real AWS clients.
All state is stored in memory for testing without hitting AWS.

Every mutating call is appended to MockSession.calls as (service, operation),
so tests can assert that a re-run changes nothing.
"""
import hashlib
from copy import deepcopy

from botocore.exceptions import ClientError

ACCOUNT_ID = "123456789012"


def _client_error(code, message="", operation="Operation"):
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def _fqdn(name):
    return name.rstrip(".") + "."


def _next_id(state, prefix):
    state["_counter"] = state.get("_counter", 0) + 1
    return f"{prefix}{state['_counter']}"


class _MockClient:
    service = None

    def __init__(self, state, calls):
        self._state = state
        self._calls = calls if calls is not None else []

    def _record(self, operation):
        self._calls.append((self.service, operation))

    @property
    def state(self):
        return self._state


class MockS3Client(_MockClient):
    """In-memory S3 client. State: buckets dict."""
    service = "s3"

    def __init__(self, state=None, calls=None, region="us-east-1"):
        super().__init__(state if state is not None else {}, calls)
        self._buckets = self._state.setdefault("buckets", {})
        self._region = region

    def _bucket(self, name):
        if name not in self._buckets:
            raise _client_error("NoSuchBucket", "The specified bucket does not exist")
        return self._buckets[name]

    def head_bucket(self, Bucket=None):
        if Bucket not in self._buckets:
            raise _client_error("404", "Not Found", "HeadBucket")
        return {}

    def create_bucket(self, Bucket=None, CreateBucketConfiguration=None):
        if Bucket in self._buckets:
            raise _client_error("BucketAlreadyOwnedByYou", "Bucket already owned by you")
        if Bucket in self._state.get("foreign_buckets", ()):
            raise _client_error("BucketAlreadyExists", "Bucket name is not available")
        self._record("create_bucket")
        self._buckets[Bucket] = {
            "region": CreateBucketConfiguration["LocationConstraint"] if CreateBucketConfiguration else "us-east-1",
            "website": None,
            "public_access_block": None,
            "policy": None,
            "objects": {},
        }
        return {"Location": f"/{Bucket}"}

    def put_bucket_website(self, Bucket=None, WebsiteConfiguration=None):
        bucket = self._bucket(Bucket)
        self._record("put_bucket_website")
        bucket["website"] = deepcopy(WebsiteConfiguration)
        return {}

    def delete_bucket_website(self, Bucket=None):
        bucket = self._bucket(Bucket)
        self._record("delete_bucket_website")
        bucket["website"] = None
        return {}

    def put_public_access_block(self, Bucket=None, PublicAccessBlockConfiguration=None):
        bucket = self._bucket(Bucket)
        self._record("put_public_access_block")
        bucket["public_access_block"] = dict(PublicAccessBlockConfiguration)
        return {}

    def put_bucket_policy(self, Bucket=None, Policy=None):
        bucket = self._bucket(Bucket)
        self._record("put_bucket_policy")
        bucket["policy"] = Policy
        return {}

    def _contents(self, Bucket):
        objs = self._bucket(Bucket)["objects"]
        return [
            {"Key": key, "ETag": f'"{hashlib.md5(obj["Body"]).hexdigest()}"', "Size": len(obj["Body"])}
            for key, obj in sorted(objs.items())
        ]

    def get_paginator(self, operation_name):
        if operation_name != "list_objects_v2":
            raise ValueError(f"Unknown paginator: {operation_name}")
        client = self

        class Paginator:
            def paginate(pag_self, Bucket=None, **kwargs):
                yield {"Contents": client._contents(Bucket), "IsTruncated": False}

        return Paginator()

    def list_objects_v2(self, Bucket=None, **kwargs):
        return {"Contents": self._contents(Bucket), "IsTruncated": False}

    def put_object(self, Bucket=None, Key=None, Body=b"", ContentType=None, ContentEncoding=None, **kwargs):
        bucket = self._bucket(Bucket)
        self._record("put_object")
        if isinstance(Body, str):
            Body = Body.encode("utf-8")
        obj = {"Body": bytes(Body), "ContentType": ContentType or "binary/octet-stream"}
        if ContentEncoding:
            obj["ContentEncoding"] = ContentEncoding
        bucket["objects"][Key] = obj
        return {"ETag": f'"{hashlib.md5(obj["Body"]).hexdigest()}"'}

    def head_object(self, Bucket=None, Key=None):
        if Bucket not in self._buckets or Key not in self._buckets[Bucket]["objects"]:
            raise _client_error("404", "Not Found", "HeadObject")
        obj = self._buckets[Bucket]["objects"][Key]
        return {
            "ETag": f'"{hashlib.md5(obj["Body"]).hexdigest()}"',
            "ContentLength": len(obj["Body"]),
            "ContentType": obj["ContentType"],
        }

    def delete_objects(self, Bucket=None, Delete=None):
        bucket = self._bucket(Bucket)
        self._record("delete_objects")
        deleted = []
        for item in Delete.get("Objects", []):
            key = item.get("Key")
            bucket["objects"].pop(key, None)
            deleted.append({"Key": key})
        return {} if Delete.get("Quiet") else {"Deleted": deleted}

    def delete_bucket(self, Bucket=None):
        bucket = self._bucket(Bucket)
        if bucket.get("objects"):
            raise _client_error("BucketNotEmpty", "The bucket you tried to delete is not empty")
        self._record("delete_bucket")
        del self._buckets[Bucket]
        return {}


class MockRoute53Client(_MockClient):
    """In-memory Route53 client. State: hosted_zones and record_sets (zone id -> list)."""
    service = "route53"

    def __init__(self, state=None, calls=None):
        super().__init__(state if state is not None else {}, calls)
        self._hosted_zones = self._state.setdefault("hosted_zones", [])
        self._record_sets = self._state.setdefault("record_sets", {})

    @staticmethod
    def _zone_key(zone_id):
        return zone_id.replace("/hostedzone/", "")

    def get_paginator(self, operation_name):
        if operation_name != "list_hosted_zones":
            raise ValueError(f"Unknown paginator: {operation_name}")
        zones = self._hosted_zones

        class Paginator:
            def paginate(pag_self, **kwargs):
                yield {"HostedZones": deepcopy(zones), "IsTruncated": False}

        return Paginator()

    def list_hosted_zones(self, **kwargs):
        return {"HostedZones": deepcopy(self._hosted_zones), "IsTruncated": False}

    def get_hosted_zone(self, Id=None):
        for zone in self._hosted_zones:
            if self._zone_key(zone["Id"]) == self._zone_key(Id):
                return {"HostedZone": deepcopy(zone)}
        raise _client_error("NoSuchHostedZone", f"No hosted zone found with ID: {Id}")

    def list_resource_record_sets(self, HostedZoneId=None, StartRecordName=None, StartRecordType=None, MaxItems=None):
        records = self._record_sets.get(self._zone_key(HostedZoneId), [])
        out = []
        for r in records:
            if StartRecordName and r["Name"].lower() != _fqdn(StartRecordName).lower():
                continue
            if StartRecordType and r.get("Type") != StartRecordType:
                continue
            out.append(deepcopy(r))
            if MaxItems and len(out) >= int(MaxItems):
                break
        return {"ResourceRecordSets": out, "IsTruncated": False}

    def change_resource_record_sets(self, HostedZoneId=None, ChangeBatch=None):
        zone = self._zone_key(HostedZoneId)
        self._record("change_resource_record_sets")
        records = self._record_sets.setdefault(zone, [])
        for change in ChangeBatch.get("Changes", []):
            action = change["Action"]
            rr = deepcopy(change["ResourceRecordSet"])
            rr["Name"] = _fqdn(rr["Name"])
            existing = [r for r in records if r["Name"] == rr["Name"] and r.get("Type") == rr["Type"]]
            if action == "CREATE" and existing:
                raise _client_error("InvalidChangeBatch", "ResourceRecordSetAlreadyExists")
            if action == "DELETE" and (not existing or existing[0] != rr):
                raise _client_error("InvalidChangeBatch", "Tried to delete resource record set but it was not found")
            records[:] = [r for r in records if not (r["Name"] == rr["Name"] and r.get("Type") == rr["Type"])]
            if action in ("CREATE", "UPSERT"):
                records.append(rr)
        return {"ChangeInfo": {"Id": "change-1", "Status": "PENDING"}}


class MockCloudFrontClient(_MockClient):
    """In-memory CloudFront client. State: distributions, invalidations and origin access controls."""
    service = "cloudfront"

    def __init__(self, state=None, calls=None):
        super().__init__(state if state is not None else {}, calls)
        self._distributions = self._state.setdefault("distributions", {})
        self._invalidations = self._state.setdefault("invalidations", [])
        self._oacs = self._state.setdefault("origin_access_controls", {})

    def _summary(self, d):
        return {
            "Id": d["Id"],
            "ARN": d["ARN"],
            "DomainName": d["DomainName"],
            "Status": d["Status"],
            "Enabled": d["Config"].get("Enabled", True),
            "Aliases": deepcopy(d["Config"].get("Aliases", {"Quantity": 0})),
        }

    def get_paginator(self, operation_name):
        if operation_name != "list_distributions":
            raise ValueError(f"Unknown paginator: {operation_name}")
        client = self

        class Paginator:
            def paginate(pag_self, **kwargs):
                yield client.list_distributions()

        return Paginator()

    def list_distributions(self, **kwargs):
        items = [self._summary(d) for d in self._distributions.values()]
        return {"DistributionList": {"Items": items, "Quantity": len(items), "IsTruncated": False}}

    def _distribution(self, Id):
        if Id not in self._distributions:
            raise _client_error("NoSuchDistribution", "The specified distribution does not exist.")
        return self._distributions[Id]

    def get_distribution_config(self, Id=None):
        d = self._distribution(Id)
        return {"DistributionConfig": deepcopy(d["Config"]), "ETag": d["ETag"]}

    def get_distribution(self, Id=None):
        d = self._distribution(Id)
        return {
            "Distribution": {
                "Id": Id,
                "ARN": d["ARN"],
                "Status": d["Status"],
                "DomainName": d["DomainName"],
                "DistributionConfig": deepcopy(d["Config"]),
            },
            "ETag": d["ETag"],
        }

    def create_distribution(self, DistributionConfig=None):
        aliases = DistributionConfig.get("Aliases", {}).get("Items", [])
        for d in self._distributions.values():
            if set(aliases) & set(d["Config"].get("Aliases", {}).get("Items", [])):
                raise _client_error("CNAMEAlreadyExists", "One or more aliases are already in use")
        self._record("create_distribution")
        dist_id = _next_id(self._state, "E")
        domain_name = f"d{dist_id.lower()}.cloudfront.net"
        self._distributions[dist_id] = {
            "Id": dist_id,
            "ARN": f"arn:aws:cloudfront::{ACCOUNT_ID}:distribution/{dist_id}",
            "DomainName": domain_name,
            "Status": self._state.get("initial_status", "Deployed"),
            "Config": deepcopy(DistributionConfig),
            "ETag": f"etag-{dist_id}",
        }
        return {"Distribution": self.get_distribution(dist_id)["Distribution"], "ETag": f"etag-{dist_id}"}

    def update_distribution(self, Id=None, DistributionConfig=None, IfMatch=None):
        d = self._distribution(Id)
        if IfMatch != d["ETag"]:
            raise _client_error("PreconditionFailed", "The If-Match version is missing or not valid")
        self._record("update_distribution")
        d["Config"] = deepcopy(DistributionConfig)
        d["ETag"] = f"{d['ETag']}-u"
        d["Status"] = self._state.get("initial_status", "Deployed")
        return {"Distribution": {"Id": Id, "Status": d["Status"]}, "ETag": d["ETag"]}

    def delete_distribution(self, Id=None, IfMatch=None):
        d = self._distribution(Id)
        if IfMatch != d["ETag"]:
            raise _client_error("PreconditionFailed", "The If-Match version is missing or not valid")
        if d["Config"].get("Enabled", True):
            raise _client_error("DistributionNotDisabled", "The distribution you are trying to delete has not been disabled.")
        self._record("delete_distribution")
        del self._distributions[Id]
        return {}

    def create_invalidation(self, DistributionId=None, InvalidationBatch=None):
        self._distribution(DistributionId)
        self._record("create_invalidation")
        inv_id = _next_id(self._state, "I")
        self._invalidations.append({
            "Id": inv_id,
            "DistributionId": DistributionId,
            "Paths": list(InvalidationBatch.get("Paths", {}).get("Items", [])),
        })
        return {"Invalidation": {"Id": inv_id, "Status": "InProgress"}}

    def create_origin_access_control(self, OriginAccessControlConfig=None):
        self._record("create_origin_access_control")
        oac_id = _next_id(self._state, "OAC")
        self._oacs[oac_id] = {"Id": oac_id, "Config": deepcopy(OriginAccessControlConfig), "ETag": f"etag-{oac_id}"}
        return {
            "OriginAccessControl": {"Id": oac_id, "OriginAccessControlConfig": deepcopy(OriginAccessControlConfig)},
            "ETag": f"etag-{oac_id}",
        }

    def list_origin_access_controls(self, Marker=None, **kwargs):
        items = [
            {"Id": oac["Id"], "Name": oac["Config"]["Name"], "SigningProtocol": oac["Config"]["SigningProtocol"],
             "SigningBehavior": oac["Config"]["SigningBehavior"],
             "OriginAccessControlOriginType": oac["Config"]["OriginAccessControlOriginType"]}
            for oac in self._oacs.values()
        ]
        return {"OriginAccessControlList": {"Items": items, "Quantity": len(items), "IsTruncated": False}}

    def get_origin_access_control(self, Id=None):
        if Id not in self._oacs:
            raise _client_error("NoSuchOriginAccessControl", "The origin access control does not exist.")
        oac = self._oacs[Id]
        return {"OriginAccessControl": {"Id": Id, "OriginAccessControlConfig": deepcopy(oac["Config"])}, "ETag": oac["ETag"]}

    def delete_origin_access_control(self, Id=None, IfMatch=None):
        if Id not in self._oacs:
            raise _client_error("NoSuchOriginAccessControl", "The origin access control does not exist.")
        for d in self._distributions.values():
            for origin in d["Config"].get("Origins", {}).get("Items", []):
                if origin.get("OriginAccessControlId") == Id:
                    raise _client_error("OriginAccessControlInUse", "The origin access control is in use.")
        self._record("delete_origin_access_control")
        del self._oacs[Id]
        return {}


class MockACMClient(_MockClient):
    """
    In-memory ACM client. State: certificates dict by ARN.

    A PENDING_VALIDATION certificate becomes ISSUED on describe once all its
    validation CNAMEs exist in the mock Route53 state, unless auto-validation
    is switched off (state['auto_validate'] = False).
    """
    service = "acm"

    def __init__(self, state=None, calls=None, region="us-east-1", route53_state=None, cloudfront_state=None):
        super().__init__(state if state is not None else {}, calls)
        self._certs = self._state.setdefault("certificates", {})
        self._region = region
        self._route53_state = route53_state if route53_state is not None else {}
        self._cloudfront_state = cloudfront_state if cloudfront_state is not None else {}

    def _make_arn(self, cert_id):
        return f"arn:aws:acm:{self._region}:{ACCOUNT_ID}:certificate/{cert_id}"

    def _not_found(self, arn):
        return _client_error("ResourceNotFoundException", f"Certificate {arn} not found")

    def _validation_published(self, cert):
        records = [r for rs in self._route53_state.get("record_sets", {}).values() for r in rs]
        for option in cert["DomainValidationOptions"]:
            rr = option["ResourceRecord"]
            if not any(r["Name"] == rr["Name"] and r.get("Type") == rr["Type"] and
                       {"Value": rr["Value"]} in r.get("ResourceRecords", []) for r in records):
                return False
        return True

    def request_certificate(self, DomainName=None, ValidationMethod=None, SubjectAlternativeNames=None, **kwargs):
        self._record("request_certificate")
        cert_id = _next_id(self._state, "cert-")
        arn = self._make_arn(cert_id)
        names = [DomainName] + [n for n in (SubjectAlternativeNames or []) if n != DomainName]
        options = []
        for name in names:
            token = hashlib.md5(f"{arn}{name}".encode()).hexdigest()[:12]
            options.append({
                "DomainName": name,
                "ValidationStatus": "PENDING_VALIDATION",
                "ResourceRecord": {
                    "Name": f"_{token}.{name}.",
                    "Type": "CNAME",
                    "Value": f"_{token}.acm-validations.aws.",
                },
            })
        self._certs[arn] = {
            "CertificateArn": arn,
            "DomainName": DomainName,
            "Status": "PENDING_VALIDATION",
            "DomainValidationOptions": options,
            "SubjectAlternativeNames": names,
        }
        return {"CertificateArn": arn}

    def describe_certificate(self, CertificateArn=None):
        if CertificateArn not in self._certs:
            raise self._not_found(CertificateArn)
        cert = self._certs[CertificateArn]
        if (cert["Status"] == "PENDING_VALIDATION" and self._state.get("auto_validate", True)
                and self._validation_published(cert)):
            cert["Status"] = "ISSUED"
            for option in cert["DomainValidationOptions"]:
                option["ValidationStatus"] = "SUCCESS"
        return {"Certificate": deepcopy(cert)}

    def delete_certificate(self, CertificateArn=None):
        if CertificateArn not in self._certs:
            raise self._not_found(CertificateArn)
        for d in self._cloudfront_state.get("distributions", {}).values():
            if d["Config"].get("ViewerCertificate", {}).get("ACMCertificateArn") == CertificateArn:
                raise _client_error("ResourceInUseException", f"Certificate {CertificateArn} is in use")
        self._record("delete_certificate")
        del self._certs[CertificateArn]
        return {}


class MockSTSClient:
    """In-memory STS client."""

    def __init__(self, account_id=ACCOUNT_ID, user_id="AIDATESTUSER", arn=f"arn:aws:iam::{ACCOUNT_ID}:user/test"):
        self._account_id = account_id
        self._user_id = user_id
        self._arn = arn

    def get_caller_identity(self, **kwargs):
        return {"Account": self._account_id, "UserId": self._user_id, "Arn": self._arn}


class MockSession:
    """Mock boto3.Session that returns in-memory clients. State is shared per service type."""

    def __init__(self, profile_name=None, region_name=None, **kwargs):
        self.profile_name = profile_name
        self.region_name = region_name
        self.calls = []
        self._s3_state = {}
        self._route53_state = {}
        self._cloudfront_state = {}
        self._acm_state = {}
        self._sts = MockSTSClient()

    def client(self, service_name, region_name=None, **kwargs):
        region = region_name or self.region_name or "us-east-1"
        if service_name == "s3":
            return MockS3Client(self._s3_state, self.calls, region=region)
        if service_name == "route53":
            return MockRoute53Client(self._route53_state, self.calls)
        if service_name == "cloudfront":
            return MockCloudFrontClient(self._cloudfront_state, self.calls)
        if service_name == "acm":
            return MockACMClient(self._acm_state, self.calls, region=region,
                                 route53_state=self._route53_state, cloudfront_state=self._cloudfront_state)
        if service_name == "sts":
            return self._sts
        raise ValueError(f"Unknown service: {service_name}")

    def mutating_calls(self, service=None):
        return [op for svc, op in self.calls if service is None or svc == service]

    # Test helpers

    def seed_route53_hosted_zone(self, zone_id, name, private=False):
        """Add a hosted zone (find_hosted_zone looks these up by name)."""
        self._route53_state.setdefault("hosted_zones", []).append({
            "Id": f"/hostedzone/{zone_id}",
            "Name": _fqdn(name),
            "CallerReference": "test",
            "Config": {"PrivateZone": private},
        })
        self._route53_state.setdefault("record_sets", {}).setdefault(zone_id, [])

    def seed_route53_record(self, zone_id, record_set):
        record = deepcopy(record_set)
        record["Name"] = _fqdn(record["Name"])
        records = self._route53_state.setdefault("record_sets", {}).setdefault(zone_id, [])
        records[:] = [r for r in records if not (r["Name"] == record["Name"] and r["Type"] == record["Type"])]
        records.append(record)

    def route53_records(self, zone_id, name=None, record_type=None):
        records = self._route53_state.get("record_sets", {}).get(zone_id, [])
        return [
            r for r in records
            if (name is None or r["Name"] == _fqdn(name)) and (record_type is None or r["Type"] == record_type)
        ]

    def seed_acm_certificate(self, arn, domain, status="ISSUED"):
        """Add an ACM certificate."""
        self._acm_state.setdefault("certificates", {})[arn] = {
            "CertificateArn": arn,
            "DomainName": domain,
            "Status": status,
            "DomainValidationOptions": [],
            "SubjectAlternativeNames": [domain],
        }

    def set_acm_auto_validate(self, enabled):
        self._acm_state["auto_validate"] = enabled

    def set_distribution_status(self, status, distribution_id=None):
        """Status for new (or, with distribution_id, one existing) distribution(s)."""
        if distribution_id:
            self._cloudfront_state["distributions"][distribution_id]["Status"] = status
        else:
            self._cloudfront_state["initial_status"] = status

    @property
    def buckets(self):
        return self._s3_state.setdefault("buckets", {})

    @property
    def distributions(self):
        return self._cloudfront_state.setdefault("distributions", {})

    @property
    def origin_access_controls(self):
        return self._cloudfront_state.setdefault("origin_access_controls", {})

    @property
    def invalidations(self):
        return self._cloudfront_state.setdefault("invalidations", [])

    @property
    def certificates(self):
        return self._acm_state.setdefault("certificates", {})
