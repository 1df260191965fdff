import unittest
from unittest import mock

from botocore.exceptions import ClientError

from backend.storage import (
    MAX_UPLOAD_BYTES,
    InMemoryStorageClient,
    S3StorageClient,
    StoragePermissionError,
    StorageUploadError,
    UnknownBucketError,
    UploadTooLargeError,
    check_upload,
)


class CheckUploadTests(unittest.TestCase):
    def test_accepts_own_folder(self):
        check_upload("photos", "alice/children/1.jpg", "alice", 10)

    def test_rejects_unknown_bucket(self):
        with self.assertRaises(UnknownBucketError):
            check_upload("avatars", "alice/1.jpg", "alice", 10)

    def test_rejects_other_folder_and_traversal(self):
        with self.assertRaises(StoragePermissionError):
            check_upload("photos", "bob/1.jpg", "alice", 10)
        with self.assertRaises(StoragePermissionError):
            check_upload("photos", "alice/../bob/1.jpg", "alice", 10)

    def test_rejects_empty_and_oversized(self):
        with self.assertRaises(StorageUploadError):
            check_upload("photos", "alice/1.jpg", "alice", 0)
        with self.assertRaises(UploadTooLargeError):
            check_upload("photos", "alice/1.jpg", "alice", MAX_UPLOAD_BYTES + 1)


class InMemoryStorageClientTests(unittest.TestCase):
    def test_upload_and_read_back(self):
        storage = InMemoryStorageClient(base_url="https://cdn.test")
        url = storage.upload_bytes("photos", "alice/drives/1.png", b"png")
        self.assertEqual(url, "https://cdn.test/photos/alice/drives/1.png")
        self.assertEqual(storage.get_bytes("photos", "alice/drives/1.png"), b"png")

    def test_quota(self):
        storage = InMemoryStorageClient(max_object_bytes=1)
        with self.assertRaises(StorageUploadError):
            storage.upload_bytes("photos", "alice/1.png", b"png")


class S3StorageClientTests(unittest.TestCase):
    def _client(self, **overrides):
        with mock.patch("backend.storage.boto3.client") as factory:
            storage = S3StorageClient(
                bucket="robinhood",
                region="ap-south-1",
                endpoint="",
                access_key_id="key",
                secret_access_key="secret",
                **overrides,
            )
        return storage, factory.return_value

    def test_upload_puts_prefixed_key(self):
        storage, s3 = self._client(public_base_url="https://cdn.test/")
        url = storage.upload_bytes("photos", "alice/1.jpg", b"x", content_type="image/jpeg")
        s3.put_object.assert_called_once_with(
            Bucket="robinhood",
            Key="photos/alice/1.jpg",
            Body=b"x",
            ContentType="image/jpeg",
        )
        self.assertEqual(url, "https://cdn.test/photos/alice/1.jpg")

    def test_default_public_url(self):
        storage, _ = self._client()
        self.assertEqual(
            storage.public_url("photos", "alice/1.jpg"),
            "https://s3.ap-south-1.amazonaws.com/robinhood/photos/alice/1.jpg",
        )

    def test_client_error_becomes_upload_error(self):
        storage, s3 = self._client()
        s3.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject"
        )
        with self.assertRaises(StorageUploadError):
            storage.upload_bytes("photos", "alice/1.jpg", b"x")


if __name__ == "__main__":
    unittest.main()
