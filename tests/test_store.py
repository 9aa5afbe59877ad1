import io
import unittest
from datetime import datetime

from botocore.exceptions import ClientError, EndpointConnectionError

from s3_ufs.credentials import CredentialChain, Credentials
from s3_ufs.errors import StoreError
from s3_ufs.models import LookupStatus
from s3_ufs.settings import AdapterSettings
from s3_ufs.store import S3ObjectStore, build_s3_store


def client_error(code, operation):
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


class FakeS3Client:
    def __init__(self, list_responses=None, head_responses=None, errors=None):
        self.list_responses = iter(list_responses or [])
        self.head_responses = head_responses or {}
        self.errors = errors or {}
        self.calls = []

    def _record(self, operation, kwargs):
        self.calls.append((operation, kwargs))
        error = self.errors.get(operation)
        if isinstance(error, Exception):
            raise error

    def head_object(self, **kwargs):
        self._record("head_object", kwargs)
        response = self.head_responses.get(kwargs["Key"])
        if isinstance(response, Exception):
            raise response
        return response

    def list_objects_v2(self, **kwargs):
        self._record("list_objects_v2", kwargs)
        return next(self.list_responses)

    def list_objects(self, **kwargs):
        self._record("list_objects", kwargs)
        return next(self.list_responses)

    def put_object(self, **kwargs):
        self._record("put_object", kwargs)
        return {}

    def upload_fileobj(self, fileobj, bucket, key):
        self._record("upload_fileobj", {"Bucket": bucket, "Key": key, "Body": fileobj.read()})

    def get_object(self, **kwargs):
        self._record("get_object", kwargs)
        return {"Body": io.BytesIO(b"data")}

    def delete_object(self, **kwargs):
        self._record("delete_object", kwargs)
        return {}

    def copy(self, copy_source, bucket, key, ExtraArgs=None, Config=None):
        self._record(
            "copy",
            {"CopySource": copy_source, "Bucket": bucket, "Key": key, "ExtraArgs": ExtraArgs, "Config": Config},
        )

    def get_bucket_acl(self, **kwargs):
        self._record("get_bucket_acl", kwargs)
        return {"Grants": [{"Grantee": {"ID": "abc"}, "Permission": "READ"}]}

    def list_buckets(self):
        self._record("list_buckets", {})
        return {"Buckets": [], "Owner": {"ID": "abc", "DisplayName": "Alice"}}


class FakeTransferConfig:
    def __init__(self, **kwargs):
        self.kwargs = kwargs


def make_store(client, **kwargs):
    return S3ObjectStore(client, "bucket-one", transfer_config_factory=FakeTransferConfig, **kwargs)


class HeadObjectTests(unittest.TestCase):
    def test_found_returns_metadata(self):
        last_modified = datetime(2024, 1, 1, 12, 0, 0)
        client = FakeS3Client(
            head_responses={
                "a.txt": {
                    "ContentLength": 123,
                    "LastModified": last_modified,
                    "ETag": '"abc123"',
                    "ContentType": "text/plain",
                }
            }
        )

        lookup = make_store(client).head_object("a.txt")

        self.assertEqual(LookupStatus.FOUND, lookup.status)
        self.assertEqual(123, lookup.metadata.size)
        self.assertEqual(last_modified, lookup.metadata.last_modified)
        self.assertEqual('"abc123"', lookup.metadata.etag)
        self.assertEqual({"Bucket": "bucket-one", "Key": "a.txt"}, client.calls[0][1])

    def test_missing_object_is_not_found(self):
        client = FakeS3Client(head_responses={"a.txt": client_error("404", "HeadObject")})

        self.assertEqual(LookupStatus.NOT_FOUND, make_store(client).head_object("a.txt").status)

    def test_other_failures_are_errors(self):
        client = FakeS3Client(head_responses={"a.txt": client_error("AccessDenied", "HeadObject")})

        lookup = make_store(client).head_object("a.txt")

        self.assertEqual(LookupStatus.ERROR, lookup.status)
        self.assertIn("AccessDenied", lookup.error)

    def test_connection_failures_are_errors(self):
        client = FakeS3Client(
            head_responses={"a.txt": EndpointConnectionError(endpoint_url="https://example.com")}
        )

        self.assertEqual(LookupStatus.ERROR, make_store(client).head_object("a.txt").status)


class ListObjectsTests(unittest.TestCase):
    def test_v2_listing_passes_prefix_delimiter_and_token(self):
        client = FakeS3Client(
            list_responses=[
                {
                    "Contents": [{"Key": "dir/a.txt"}],
                    "CommonPrefixes": [{"Prefix": "dir/sub/"}],
                    "IsTruncated": True,
                    "NextContinuationToken": "token-2",
                }
            ]
        )

        page = make_store(client).list_objects("dir/", delimiter="/", max_keys=10, continuation_token="token-1")

        self.assertEqual(["dir/a.txt"], page.names)
        self.assertEqual(["dir/sub/"], page.prefixes)
        self.assertTrue(page.truncated)
        self.assertEqual("token-2", page.continuation_token)
        operation, kwargs = client.calls[0]
        self.assertEqual("list_objects_v2", operation)
        self.assertEqual(
            {
                "Bucket": "bucket-one",
                "MaxKeys": 10,
                "Prefix": "dir/",
                "Delimiter": "/",
                "ContinuationToken": "token-1",
            },
            kwargs,
        )

    def test_v2_listing_omits_empty_prefix_and_delimiter(self):
        client = FakeS3Client(list_responses=[{"Contents": [], "IsTruncated": False}])

        page = make_store(client).list_objects("")

        self.assertEqual({"Bucket": "bucket-one", "MaxKeys": 1000}, client.calls[0][1])
        self.assertFalse(page.truncated)
        self.assertIsNone(page.continuation_token)

    def test_legacy_listing_resumes_after_last_key(self):
        client = FakeS3Client(
            list_responses=[
                {"Contents": [{"Key": "a"}, {"Key": "b"}], "IsTruncated": True},
            ]
        )

        page = make_store(client, legacy_listing=True).list_objects("", continuation_token="0")

        self.assertEqual("list_objects", client.calls[0][0])
        self.assertEqual("0", client.calls[0][1]["Marker"])
        self.assertEqual("b", page.continuation_token)

    def test_legacy_listing_prefers_next_marker(self):
        client = FakeS3Client(
            list_responses=[
                {"Contents": [{"Key": "a"}], "IsTruncated": True, "NextMarker": "m"},
            ]
        )

        page = make_store(client, legacy_listing=True).list_objects("", delimiter="/")

        self.assertEqual("m", page.continuation_token)

    def test_listing_failure_raises_store_error(self):
        client = FakeS3Client(errors={"list_objects_v2": client_error("AccessDenied", "ListObjectsV2")})

        with self.assertRaises(StoreError):
            make_store(client).list_objects("dir/")


class MutationCallTests(unittest.TestCase):
    def test_put_object_sends_marker_headers(self):
        client = FakeS3Client()

        make_store(client).put_object("dir/_$folder$", b"", content_md5="hash", content_type="application/octet-stream")

        self.assertEqual(
            {
                "Bucket": "bucket-one",
                "Key": "dir/_$folder$",
                "Body": b"",
                "ContentLength": 0,
                "ContentMD5": "hash",
                "ContentType": "application/octet-stream",
            },
            client.calls[0][1],
        )

    def test_copy_uses_managed_transfer_with_threshold(self):
        client = FakeS3Client()
        store = make_store(client, multipart_copy_threshold=5)

        store.copy_object("src", "dst")
        store.copy_object("src", "dst", encrypt=True)

        plain, encrypted = (kwargs for _, kwargs in client.calls)
        self.assertEqual({"Bucket": "bucket-one", "Key": "src"}, plain["CopySource"])
        self.assertEqual("dst", plain["Key"])
        self.assertIsNone(plain["ExtraArgs"])
        self.assertEqual({"multipart_threshold": 5}, plain["Config"].kwargs)
        self.assertEqual({"ServerSideEncryption": "AES256"}, encrypted["ExtraArgs"])

    def test_copy_failure_raises_store_error(self):
        client = FakeS3Client(errors={"copy": client_error("InternalError", "CopyObject")})

        with self.assertRaises(StoreError):
            make_store(client).copy_object("src", "dst")

    def test_get_object_requests_range_for_offset(self):
        client = FakeS3Client()
        store = make_store(client)

        self.assertEqual(b"data", store.get_object("a").read())
        store.get_object("a", 10)

        self.assertNotIn("Range", client.calls[0][1])
        self.assertEqual("bytes=10-", client.calls[1][1]["Range"])

    def test_delete_and_upload(self):
        client = FakeS3Client()
        store = make_store(client)

        store.delete_object("gone")
        store.upload_fileobj("new", io.BytesIO(b"payload"))

        self.assertEqual({"Bucket": "bucket-one", "Key": "gone"}, client.calls[0][1])
        self.assertEqual(b"payload", client.calls[1][1]["Body"])

    def test_acl_and_identity(self):
        store = make_store(FakeS3Client())

        self.assertEqual([{"Grantee": {"ID": "abc"}, "Permission": "READ"}], store.get_bucket_acl())
        self.assertEqual(("abc", "Alice"), store.get_account_identity())


class StaticProvider:
    name = "static"

    def load(self):
        return Credentials("access", "secret", session_token="token", source=self.name)


class BuildStoreTests(unittest.TestCase):
    def test_builds_client_from_settings_and_credentials(self):
        captured = {}

        def factory(service, **kwargs):
            captured["service"] = service
            captured.update(kwargs)
            return FakeS3Client()

        settings = AdapterSettings(
            bucket="bucket-one",
            endpoint_url="https://example.com",
            region_name="eu-west-1",
            legacy_listing=True,
        )

        store = build_s3_store(
            settings,
            client_factory=factory,
            credential_chain=CredentialChain([StaticProvider()]),
        )

        self.assertEqual("bucket-one", store.bucket)
        self.assertEqual("s3", captured["service"])
        self.assertEqual("access", captured["aws_access_key_id"])
        self.assertEqual("secret", captured["aws_secret_access_key"])
        self.assertEqual("token", captured["aws_session_token"])
        self.assertEqual("https://example.com", captured["endpoint_url"])
        self.assertEqual("eu-west-1", captured["region_name"])
        self.assertTrue(captured["use_ssl"])
        self.assertEqual("s3v4", captured["config"].signature_version)

    def test_requires_bucket(self):
        with self.assertRaises(ValueError):
            build_s3_store(AdapterSettings(), credential_chain=CredentialChain([StaticProvider()]))


if __name__ == "__main__":
    unittest.main()
