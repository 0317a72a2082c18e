"""Fake S3 client shared by the tests."""

from __future__ import annotations

import threading

import botocore.exceptions


def client_error(code: str, operation: str, message: str = "error") -> botocore.exceptions.ClientError:
    return botocore.exceptions.ClientError(
        {"Error": {"Code": code, "Message": message}}, operation
    )


class FakeS3Client:
    """
    Records S3 calls made from any thread.

    Attributes:
        pages: Listing pages returned per bucket, in order.
        missing: Buckets for which head_bucket fails.
        delete_errors: Error entries returned by delete_objects per bucket.
        list_failures: Buckets whose listing raises.
    """

    def __init__(self) -> None:
        self.pages: dict[str, list[dict]] = {}
        self.missing: set[str] = set()
        self.delete_errors: dict[str, list[dict]] = {}
        self.list_failures: dict[str, Exception] = {}
        self.calls: list[tuple[str, dict]] = []
        self._page_index: dict[str, int] = {}
        self._lock = threading.Lock()

    def _record(self, operation: str, params: dict) -> None:
        with self._lock:
            self.calls.append((operation, params))

    def calls_for(self, operation: str, bucket: str | None = None) -> list[dict]:
        return [
            params
            for op, params in self.calls
            if op == operation and (bucket is None or params["Bucket"] == bucket)
        ]

    def head_bucket(self, **params):
        self._record("head_bucket", params)
        if params["Bucket"] in self.missing:
            raise client_error("404", "HeadBucket", "Not Found")
        return {}

    def list_object_versions(self, **params):
        self._record("list_object_versions", params)
        bucket = params["Bucket"]
        if bucket in self.list_failures:
            raise self.list_failures[bucket]
        pages = self.pages.get(bucket, [{}])
        with self._lock:
            index = self._page_index.get(bucket, 0)
            self._page_index[bucket] = index + 1
        return pages[index]

    def delete_objects(self, **params):
        self._record("delete_objects", params)
        return {"Errors": list(self.delete_errors.get(params["Bucket"], []))}


def versions(*pairs: tuple[str, str]) -> list[dict]:
    return [{"Key": key, "VersionId": version_id} for key, version_id in pairs]


