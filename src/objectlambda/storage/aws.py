"""aiobotocore clients for the backing store and the access point.

``AWSBackingStore`` talks to the bucket that actually holds the data. It
can be any S3-compatible store (endpoint and path-style addressing are
configurable). ``AccessPointWriter`` talks to AWS S3 itself and is only
used for WriteGetObjectResponse.

Both clients are created once per execution environment and reused across
invocations. Credentials are resolved via the standard AWS credential
chain unless explicit keys are configured.
"""

import logging
from typing import Any

from aiobotocore.session import AioSession
from botocore.config import Config as BotoConfig

from objectlambda.config import AccessPointConfig, BackingStoreConfig

logger = logging.getLogger(__name__)

_PRESIGN_METHODS = {"GET": "get_object", "HEAD": "head_object"}

# Response headers that WriteGetObjectResponse accepts as parameters.
_WRITE_RESPONSE_HEADERS = {
    "accept-ranges": "AcceptRanges",
    "cache-control": "CacheControl",
    "content-disposition": "ContentDisposition",
    "content-encoding": "ContentEncoding",
    "content-language": "ContentLanguage",
    "content-range": "ContentRange",
    "content-type": "ContentType",
    "etag": "ETag",
    "x-amz-mp-parts-count": "PartsCount",
    "x-amz-storage-class": "StorageClass",
    "x-amz-version-id": "VersionId",
}


class _AioClient:
    """Lifecycle of a single aiobotocore S3 client."""

    def __init__(
        self,
        region: str = "us-east-1",
        endpoint_url: str = "",
        use_path_style: bool = False,
        access_key_id: str = "",
        secret_access_key: str = "",
        max_attempts: int = 3,
    ) -> None:
        self.region = region
        self.endpoint_url = endpoint_url
        self.use_path_style = use_path_style
        self.access_key_id = access_key_id
        self.secret_access_key = secret_access_key
        self.max_attempts = max_attempts
        self._session = AioSession()
        self._client = None
        self._client_ctx = None

    async def init(self) -> None:
        """Create the aiobotocore S3 client."""
        if self._client is not None:
            return

        # Build client kwargs from config
        client_kwargs: dict = {"region_name": self.region}
        if self.endpoint_url:
            client_kwargs["endpoint_url"] = self.endpoint_url
        boto_config: dict[str, Any] = {
            "signature_version": "s3v4",
            "retries": {"max_attempts": self.max_attempts},
        }
        if self.use_path_style:
            boto_config["s3"] = {"addressing_style": "path"}
        client_kwargs["config"] = BotoConfig(**boto_config)

        # Use explicit credentials if provided, otherwise fall back to chain
        if self.access_key_id and self.secret_access_key:
            session = AioSession()
            session.set_credentials(self.access_key_id, self.secret_access_key)
            self._session = session
        self._client_ctx = self._session.create_client("s3", **client_kwargs)
        self._client = await self._client_ctx.__aenter__()

    async def close(self) -> None:
        """Close the aiobotocore client session."""
        if self._client_ctx is not None:
            await self._client_ctx.__aexit__(None, None, None)
            self._client = None
            self._client_ctx = None

    async def _get_client(self):
        if self._client is None:
            await self.init()
        return self._client


class AWSBackingStore(_AioClient):
    """Backing store proxied through an S3-compatible API.

    Attributes:
        bucket_name: The bucket holding the original objects.
    """

    def __init__(self, bucket_name: str, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.bucket_name = bucket_name

    @classmethod
    def from_config(cls, config: BackingStoreConfig) -> "AWSBackingStore":
        return cls(
            bucket_name=config.bucket,
            region=config.region,
            endpoint_url=config.endpoint_url,
            use_path_style=config.use_path_style,
            access_key_id=config.access_key_id,
            secret_access_key=config.secret_access_key,
            max_attempts=config.max_attempts,
        )

    async def init(self) -> None:
        if self._client is not None:
            return
        await super().init()
        logger.info(
            "Backing store client initialized: bucket=%s endpoint=%s region=%s",
            self.bucket_name,
            self.endpoint_url or "aws",
            self.region,
        )

    async def get_object(
        self, key: str, range: str | None = None, part_number: int | None = None
    ) -> dict[str, Any]:
        """Download an object from the backing store.

        Raises:
            botocore.exceptions.ClientError: If the store rejects the request.
        """
        client = await self._get_client()
        kwargs: dict[str, Any] = {"Bucket": self.bucket_name, "Key": key}
        if range:
            kwargs["Range"] = range
        if part_number is not None:
            kwargs["PartNumber"] = part_number
        resp = await client.get_object(**kwargs)
        async with resp["Body"] as stream:
            resp["Body"] = await stream.read()
        return resp

    async def head_object(self, key: str) -> dict[str, Any]:
        """Fetch an object's metadata from the backing store.

        Raises:
            botocore.exceptions.ClientError: If the store rejects the request.
        """
        client = await self._get_client()
        return await client.head_object(Bucket=self.bucket_name, Key=key)

    async def list_objects_v2(
        self,
        prefix: str | None = None,
        delimiter: str | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        """List objects in the backing store bucket.

        Empty or None parameters are left out of the request.
        """
        client = await self._get_client()
        params: dict[str, Any] = {"Bucket": self.bucket_name}
        if prefix:
            params["Prefix"] = prefix
        if delimiter:
            params["Delimiter"] = delimiter
        for name, value in kwargs.items():
            if value is not None and value != "":
                params[name] = value
        return await client.list_objects_v2(**params)

    async def presign(
        self,
        method: str,
        key: str,
        params: dict[str, Any] | None = None,
        expires_in: int = 300,
    ) -> str:
        """Generate a presigned GetObject or HeadObject URL.

        Raises:
            ValueError: If ``method`` is not GET or HEAD.
        """
        client_method = _PRESIGN_METHODS.get(method.upper())
        if client_method is None:
            raise ValueError(f"Cannot presign method {method!r}")
        client = await self._get_client()
        request_params = {"Bucket": self.bucket_name, "Key": key}
        request_params.update(params or {})
        return await client.generate_presigned_url(
            client_method,
            Params=request_params,
            ExpiresIn=expires_in,
        )


class AccessPointWriter(_AioClient):
    """Sends GetObject results back through WriteGetObjectResponse."""

    @classmethod
    def from_config(cls, config: AccessPointConfig) -> "AccessPointWriter":
        return cls(region=config.region)

    async def write_get_object_response(
        self,
        route: str,
        token: str,
        status_code: int,
        body: bytes = b"",
        error_code: str | None = None,
        error_message: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        client = await self._get_client()
        kwargs: dict[str, Any] = {
            "RequestRoute": route,
            "RequestToken": token,
            "StatusCode": status_code,
        }
        if error_code is not None:
            kwargs["ErrorCode"] = error_code
            kwargs["ErrorMessage"] = error_message or ""
        else:
            kwargs["Body"] = body
            kwargs["ContentLength"] = len(body)
        for name, value in (headers or {}).items():
            param = _WRITE_RESPONSE_HEADERS.get(name.lower())
            if param is None:
                continue
            kwargs[param] = int(value) if param == "PartsCount" else value
        await client.write_get_object_response(**kwargs)
