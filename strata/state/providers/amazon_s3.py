"""
State Store on Amazon S3.

Swaps use S3 conditional writes: IfMatch on the ETag that was read, or
IfNoneMatch when the state object does not exist yet.
"""

from __future__ import annotations

__all__ = ["AmazonS3"]

from typing import Any

import boto3
from botocore.exceptions import ClientError

from strata.core import Context, Response, get_logger
from strata.core.exceptions import ConflictError

from .._models import StateSnapshot
from .._provider import StateProvider

logger = get_logger(__name__)

CONFLICT_CODES = (
    "PreconditionFailed",
    "ConditionalRequestConflict",
    "412",
    "409",
)
NOT_FOUND_CODES = ("NoSuchKey", "404")


class AmazonS3(StateProvider):
    bucket: str
    key: str
    region: str | None
    profile_name: str | None
    aws_access_key_id: str | None
    aws_secret_access_key: str | None
    aws_session_token: str | None
    nparams: dict[str, Any]

    _client: Any

    def __init__(
        self,
        bucket: str,
        key: str = "strata/state.json",
        region: str | None = None,
        profile_name: str | None = None,
        aws_access_key_id: str | None = None,
        aws_secret_access_key: str | None = None,
        aws_session_token: str | None = None,
        nparams: dict[str, Any] = dict(),
        **kwargs,
    ):
        """Initialize.

        Args:
            bucket:
                S3 bucket holding the state.
            key:
                Object key of the state.
            region:
                AWS region name.
            profile_name:
                AWS profile name.
            aws_access_key_id:
                AWS access key id.
            aws_secret_access_key:
                AWS secret access key.
            aws_session_token:
                AWS session token.
            nparams:
                Native parameters to the boto3 client.
        """
        self.bucket = bucket
        self.key = key
        self.region = region
        self.profile_name = profile_name
        self.aws_access_key_id = aws_access_key_id
        self.aws_secret_access_key = aws_secret_access_key
        self.aws_session_token = aws_session_token
        self.nparams = nparams

        self._client = None

        super().__init__(**kwargs)

    def __setup__(self, context: Context | None = None) -> None:
        if self._client is not None:
            return

        session_kwargs: dict[str, Any] = {}
        if self.profile_name is not None:
            session_kwargs["profile_name"] = self.profile_name
        elif (
            self.aws_access_key_id is not None
            and self.aws_secret_access_key is not None
        ):
            session_kwargs["aws_access_key_id"] = self.aws_access_key_id
            session_kwargs["aws_secret_access_key"] = (
                self.aws_secret_access_key
            )
            session_kwargs["aws_session_token"] = self.aws_session_token
        session = boto3.Session(**session_kwargs)
        self._client = session.client(
            "s3", region_name=self.region, **self.nparams
        )

    def get_snapshot(self, **kwargs: Any) -> Response[StateSnapshot]:
        self.__setup__()
        snapshot, _ = self._read()
        return Response(result=snapshot)

    def compare_and_swap(
        self,
        expected_version: int,
        snapshot: StateSnapshot,
        **kwargs: Any,
    ) -> Response[StateSnapshot]:
        self.__setup__()
        current, etag = self._read()
        stored = self._next(current, expected_version, snapshot)
        args: dict[str, Any] = {
            "Bucket": self.bucket,
            "Key": self.key,
            "Body": stored.to_json(indent=2).encode("utf-8"),
            "ContentType": "application/json",
        }
        if etag is None:
            args["IfNoneMatch"] = "*"
        else:
            args["IfMatch"] = etag
        try:
            self._client.put_object(**args)
        except ClientError as e:
            if e.response["Error"]["Code"] in CONFLICT_CODES:
                raise ConflictError(
                    f"s3://{self.bucket}/{self.key} changed concurrently"
                )
            raise
        return Response(result=stored)

    def close(self) -> None:
        self._client = None

    def _read(self) -> tuple[StateSnapshot, str | None]:
        try:
            response = self._client.get_object(
                Bucket=self.bucket, Key=self.key
            )
        except ClientError as e:
            if e.response["Error"]["Code"] in NOT_FOUND_CODES:
                return StateSnapshot(), None
            raise
        content = response["Body"].read()
        return StateSnapshot.from_json(content), response["ETag"]
