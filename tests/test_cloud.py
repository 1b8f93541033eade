"""
Unit tests for direct cloud API helpers
"""

import unittest
from unittest.mock import Mock, patch
import sys
import os

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from botocore.exceptions import ClientError, EndpointConnectionError

from ops import cloud
from ops.errors import CloudError
from ops.settings import Settings


def client_error(code, operation="HeadBucket", message=""):
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)


def paginator_of(*pages):
    paginator = Mock()
    paginator.paginate.return_value = list(pages)
    return paginator


class TestClient(unittest.TestCase):

    @patch("ops.cloud.boto3.client")
    def test_client_uses_emulator_endpoint(self, mock_client):
        settings = Settings.model_validate(dict(endpoint="http://localhost:4566", region="eu-west-1"))

        cloud.client("s3", settings)

        args, kwargs = mock_client.call_args
        self.assertEqual(args[0], "s3")
        self.assertEqual(kwargs["endpoint_url"], "http://localhost:4566")
        self.assertEqual(kwargs["region_name"], "eu-west-1")
        self.assertEqual(kwargs["aws_access_key_id"], "test")


class TestCloudErrors(unittest.TestCase):

    def test_client_error(self):
        with self.assertRaises(CloudError) as ctx:
            with cloud.cloud_errors("Listing buckets"):
                raise client_error("AccessDenied", message="denied")
        self.assertEqual(ctx.exception.message, "Listing buckets failed: AccessDenied denied")
        self.assertIsNotNone(ctx.exception.hint)

    def test_connection_error(self):
        with self.assertRaises(CloudError):
            with cloud.cloud_errors("Listing buckets"):
                raise EndpointConnectionError(endpoint_url="http://localhost:4566")


class TestBuckets(unittest.TestCase):

    def test_bucket_exists(self):
        s3 = Mock()
        self.assertTrue(cloud.bucket_exists(s3, "lab-site"))

        s3.head_bucket.side_effect = client_error("404")
        self.assertFalse(cloud.bucket_exists(s3, "lab-site"))

    def test_bucket_exists_propagates_other_errors(self):
        s3 = Mock()
        s3.head_bucket.side_effect = client_error("403")
        with self.assertRaises(ClientError):
            cloud.bucket_exists(s3, "lab-site")

    def test_list_buckets_sorted(self):
        s3 = Mock()
        s3.list_buckets.return_value = {"Buckets": [{"Name": "b"}, {"Name": "a"}]}
        self.assertEqual(cloud.list_buckets(s3), ["a", "b"])

    def test_describe_bucket(self):
        s3 = Mock()
        s3.get_bucket_versioning.return_value = {"Status": "Enabled"}
        s3.get_bucket_encryption.return_value = {"ServerSideEncryptionConfiguration": {"Rules": [
            {"ApplyServerSideEncryptionByDefault": {"SSEAlgorithm": "aws:kms", "KMSMasterKeyID": "arn:key"}},
        ]}}
        s3.get_bucket_website.return_value = {"IndexDocument": {"Suffix": "index.html"}}
        s3.get_paginator.return_value = paginator_of({"KeyCount": 2}, {"KeyCount": 1})

        summary = cloud.describe_bucket(s3, "lab-site")

        self.assertEqual(summary, {
            "name": "lab-site",
            "versioning": "Enabled",
            "encryption": "aws:kms",
            "kms_key_id": "arn:key",
            "index_document": "index.html",
            "object_count": 3,
        })

    def test_describe_unconfigured_bucket(self):
        s3 = Mock()
        s3.get_bucket_versioning.return_value = {}
        s3.get_bucket_encryption.side_effect = client_error("ServerSideEncryptionConfigurationNotFoundError")
        s3.get_bucket_website.side_effect = client_error("NoSuchWebsiteConfiguration")
        s3.get_paginator.return_value = paginator_of({})

        summary = cloud.describe_bucket(s3, "plain")

        self.assertEqual(summary["versioning"], "Disabled")
        self.assertEqual(summary["encryption"], "none")
        self.assertEqual(summary["index_document"], "")
        self.assertEqual(summary["object_count"], 0)


class TestEmptyBucket(unittest.TestCase):

    def test_deletes_versions_and_markers(self):
        s3 = Mock()
        s3.get_paginator.return_value = paginator_of({
            "Versions": [{"Key": "index.html", "VersionId": "v1"}, {"Key": "index.html", "VersionId": "v2"}],
            "DeleteMarkers": [{"Key": "old.js", "VersionId": "m1"}],
        })
        s3.delete_objects.return_value = {}

        removed = cloud.remove_bucket(s3, "lab-site")

        self.assertEqual(removed, 3)
        objects = s3.delete_objects.call_args.kwargs["Delete"]["Objects"]
        self.assertIn({"Key": "old.js", "VersionId": "m1"}, objects)
        s3.delete_bucket.assert_called_once_with(Bucket="lab-site")

    def test_batches_large_pages(self):
        s3 = Mock()
        versions = [{"Key": f"k{i}", "VersionId": "v"} for i in range(1500)]
        s3.get_paginator.return_value = paginator_of({"Versions": versions})
        s3.delete_objects.return_value = {}

        self.assertEqual(cloud.empty_bucket(s3, "lab-site"), 1500)
        self.assertEqual(s3.delete_objects.call_count, 2)

    def test_delete_errors_raise(self):
        s3 = Mock()
        s3.get_paginator.return_value = paginator_of({"Versions": [{"Key": "a", "VersionId": "v"}]})
        s3.delete_objects.return_value = {"Errors": [{"Key": "a", "Code": "AccessDenied"}]}

        with self.assertRaises(CloudError) as ctx:
            cloud.empty_bucket(s3, "lab-site")
        self.assertIn("AccessDenied", ctx.exception.message)


class TestInventory(unittest.TestCase):

    def test_list_policies_filters_by_prefix(self):
        iam = Mock()
        iam.get_paginator.return_value = paginator_of({"Policies": [
            {"PolicyName": "storage-lab-localstack-site-reader", "Arn": "arn:reader"},
            {"PolicyName": "unrelated", "Arn": "arn:other"},
        ]})

        policies = cloud.list_policies(iam, "storage-lab")

        self.assertEqual(policies, [{"name": "storage-lab-localstack-site-reader", "arn": "arn:reader"}])
        iam.get_paginator.return_value.paginate.assert_called_once_with(Scope="Local")

    def test_list_log_groups(self):
        logs = Mock()
        logs.get_paginator.return_value = paginator_of({"logGroups": [{"logGroupName": "/storage-lab/localstack/site"}]})
        self.assertEqual(cloud.list_log_groups(logs, "/storage-lab"), ["/storage-lab/localstack/site"])


if __name__ == "__main__":
    unittest.main()
