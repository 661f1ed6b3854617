# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
import datetime
import io
import logging
import warnings
from collections.abc import AsyncIterable, Callable, Collection, Iterable
from copy import deepcopy
from dataclasses import dataclass
from hashlib import sha256
from inspect import iscoroutinefunction
from typing import Required, TypedDict

from ._http import AWSRequest, Field, URI
from ._identity import AnonymousIdentity, AWSCredentialsIdentity, Identity
from ._io import AsyncBytesReader
from .canonical import format_canonical_request, signing_fields
from .checksums import (
    Checksum,
    ChecksumDirective,
    integrate_checksum,
    requires_payload_checksum,
)
from .exceptions import (
    AWSSDKWarning,
    MissingExpectedParameterException,
    PayloadSigningException,
)
from .interfaces.io import AsyncSeekable, Seekable
from .keys import (
    SIGNING_ALGORITHM,
    calculate_signature,
    credential_scope,
    derive_signing_key,
    string_to_sign,
)

logger = logging.getLogger(__name__)

HEADERS_EXCLUDED_FROM_SIGNING: tuple[str, ...] = (
    "accept",
    "accept-encoding",
    "authorization",
    "connection",
    "expect",
    "user-agent",
    "x-amzn-trace-id",
)
DEFAULT_PORTS: dict[str, int] = {"http": 80, "https": 443}

SIGV4_TIMESTAMP_FORMAT: str = "%Y%m%dT%H%M%SZ"
UNSIGNED_PAYLOAD: str = "UNSIGNED-PAYLOAD"
STREAMING_UNSIGNED_PAYLOAD_TRAILER: str = "STREAMING-UNSIGNED-PAYLOAD-TRAILER"
EMPTY_SHA256_HASH = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

CONTENT_SHA256_HEADER: str = "X-Amz-Content-SHA256"
DATE_HEADER: str = "X-Amz-Date"
SECURITY_TOKEN_HEADER: str = "X-Amz-Security-Token"
# Placeholder asking the signer to fill in the computed payload hash.
REQUIRED_PAYLOAD_HASH: str = "required"


class SigV4SigningProperties(TypedDict, total=False):
    region: Required[str]
    service: Required[str]
    date: str
    payload_signing_enabled: bool
    content_checksum_enabled: bool
    uri_encode_path: bool
    sign_session_token: bool
    checksum: ChecksumDirective


@dataclass
class _PayloadDigest:
    payload_hash: str
    checksum: Checksum | None = None


def _utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.UTC)


class _BaseSigV4Signer:
    """Steps shared by the sync and async signers.

    Only reading the request body differs between the two. Everything else is
    pure computation over a private copy of the request.
    """

    def __init__(
        self,
        *,
        excluded_headers: Collection[str] = HEADERS_EXCLUDED_FROM_SIGNING,
        clock: Callable[[], datetime.datetime] = _utc_now,
    ):
        """
        :param excluded_headers: Header names that are never signed, for example
            headers rewritten by proxies. Matched case-insensitively.
        :param clock: Supplies the signing time when the signing properties
            don't carry a ``date``.
        """
        self._excluded_headers = frozenset(name.lower() for name in excluded_headers)
        self._clock = clock

    def generate_authorization_field(
        self, *, credential: str, signed_headers: list[str], signature: str
    ) -> Field:
        """Generate the `Authorization` field.

        :param credential:
            Credential scope string for generating the Authorization header.
            Defined as:
                <access_key>/<date>/<region>/<service>/<request_type>
        :param signed_headers:
            A list of the field names used in signing.
        :param signature:
            Final hash of the SigV4 signing algorithm generated from the
            canonical request and string to sign.
        """
        signed_headers_str = ";".join(signed_headers)
        auth_str = (
            f"{SIGNING_ALGORITHM} Credential={credential}, "
            f"SignedHeaders={signed_headers_str}, Signature={signature}"
        )
        return Field(name="Authorization", values=[auth_str])

    def string_to_sign(
        self,
        *,
        canonical_request: str,
        signing_properties: SigV4SigningProperties,
    ) -> str:
        """The string to sign is the second step of our signing algorithm which
        concatenates the formal identifier of our signing algorithm, the signing
        DateTime, the scope of our credentials, and a hash of our previously generated
        canonical request.

        :param canonical_request:
            String generated from the `canonical_request` method.
        :param signing_properties:
            SigV4SigningProperties to define signing primitives such as
            the target service, region, and date.
        """
        date = signing_properties.get("date")
        if date is None:
            raise MissingExpectedParameterException(
                "Cannot generate string_to_sign without a valid date "
                f"in your signing_properties. Current value: {date}"
            )
        return string_to_sign(
            timestamp=date,
            scope=self._scope(signing_properties=signing_properties),
            canonical_request=canonical_request,
        )

    def _scope(self, *, signing_properties: SigV4SigningProperties) -> str:
        return credential_scope(
            date=signing_properties.get("date", ""),
            region=signing_properties.get("region", ""),
            service=signing_properties.get("service", ""),
        )

    def _validate_identity(self, *, identity: Identity) -> None:
        """Perform runtime and expiration checks before attempting signing."""
        if not isinstance(identity, AWSCredentialsIdentity):
            raise ValueError(
                "Received unexpected value for identity parameter. Expected "
                f"AWSCredentialIdentity but received {type(identity)}."
            )
        elif identity.is_expired:
            raise ValueError(
                f"Provided identity expired at {identity.expiration}. Please "
                "refresh the credentials or update the expiration parameter."
            )

    def _normalize_signing_properties(
        self, *, signing_properties: SigV4SigningProperties
    ) -> SigV4SigningProperties:
        # Create copy of signing properties to avoid mutating the original
        new_signing_properties = SigV4SigningProperties(**signing_properties)
        if "date" not in new_signing_properties:
            date_obj = self._clock()
            if date_obj.tzinfo is not None:
                date_obj = date_obj.astimezone(datetime.UTC)
            new_signing_properties["date"] = date_obj.strftime(SIGV4_TIMESTAMP_FORMAT)
        else:
            try:
                datetime.datetime.strptime(
                    new_signing_properties["date"], SIGV4_TIMESTAMP_FORMAT
                )
            except ValueError as e:
                raise MissingExpectedParameterException(
                    f"Expected a signing date formatted as {SIGV4_TIMESTAMP_FORMAT}, "
                    f"but received {new_signing_properties['date']!r}."
                ) from e
        # Fails on an empty region or service before any canonicalization.
        self._scope(signing_properties=new_signing_properties)
        return new_signing_properties

    def _generate_new_request(
        self,
        *,
        request: AWSRequest,
        signing_properties: SigV4SigningProperties,
        identity: AWSCredentialsIdentity,
    ) -> AWSRequest:
        """Copy the request and add the fields that are signed unconditionally."""
        new_request = deepcopy(request)
        new_request.sync_query()
        fields = new_request.fields
        # Overwrite any existing date so the header and the string to sign agree.
        fields.set_field(Field(name=DATE_HEADER, values=[signing_properties["date"]]))
        if (
            identity.session_token is not None
            and SECURITY_TOKEN_HEADER not in fields
            and signing_properties.get("sign_session_token", False)
        ):
            fields.set_field(
                Field(name=SECURITY_TOKEN_HEADER, values=[identity.session_token])
            )
        return new_request

    def _preset_payload_hash(self, *, request: AWSRequest) -> str | None:
        """A payload hash the caller already placed in the request, if any."""
        field = request.fields.get(CONTENT_SHA256_HEADER)
        if field is None or len(field.values) != 1:
            return None
        if field.values[0] == REQUIRED_PAYLOAD_HASH:
            return None
        return field.values[0]

    def _payload_sentinel(
        self, *, request: AWSRequest, signing_properties: SigV4SigningProperties
    ) -> str | None:
        """The payload hash when it can be determined without reading the body."""
        if preset := self._preset_payload_hash(request=request):
            return preset
        if not self._should_sha256_sign_payload(
            request=request, signing_properties=signing_properties
        ):
            directive = signing_properties.get("checksum")
            if directive is not None and directive.in_trailer:
                return STREAMING_UNSIGNED_PAYLOAD_TRAILER
            return UNSIGNED_PAYLOAD
        if request.body is None:
            return EMPTY_SHA256_HASH
        return None

    def _should_sha256_sign_payload(
        self,
        *,
        request: AWSRequest,
        signing_properties: SigV4SigningProperties,
    ) -> bool:
        # All insecure connections should be signed
        if request.destination.scheme != "https":
            return True

        return signing_properties.get("payload_signing_enabled", True)

    def _payload_checksum(
        self, *, request: AWSRequest, signing_properties: SigV4SigningProperties
    ) -> Checksum | None:
        """A fresh checksum if a header checksum has to be computed from the body."""
        directive = signing_properties.get("checksum")
        if directive is None or not requires_payload_checksum(
            directive, request.fields
        ):
            return None
        return directive.algorithm.new_checksum()

    def _canonical_request(
        self,
        *,
        request: AWSRequest,
        signing_properties: SigV4SigningProperties,
        digest: _PayloadDigest,
    ) -> tuple[str, list[str]]:
        """Apply checksum and content hash fields, then canonicalize the request.

        :returns: The canonical request and the names of the signed headers.
        """
        if directive := signing_properties.get("checksum"):
            integrate_checksum(
                fields=request.fields,
                directive=directive,
                checksum=digest.checksum,
                trailers=request.trailers,
            )

        content_hash = request.fields.get(CONTENT_SHA256_HEADER)
        if signing_properties.get("content_checksum_enabled", False) or (
            content_hash is not None
            and content_hash.values == [REQUIRED_PAYLOAD_HASH]
        ):
            request.fields.set_field(
                Field(name=CONTENT_SHA256_HEADER, values=[digest.payload_hash])
            )

        signed_fields = signing_fields(
            fields=request.fields,
            host=self._normalize_host_field(uri=request.destination),
            excluded_headers=self._excluded_headers,
        )
        canonical_request = format_canonical_request(
            method=request.method,
            path=request.destination.path,
            query_params=request.query_params,
            signed_fields=signed_fields,
            payload_hash=digest.payload_hash,
            uri_encode_path=signing_properties.get("uri_encode_path", True),
        )
        return canonical_request, list(signed_fields)

    def _apply_signature(
        self,
        *,
        request: AWSRequest,
        signing_properties: SigV4SigningProperties,
        identity: AWSCredentialsIdentity,
        digest: _PayloadDigest,
    ) -> AWSRequest:
        # Construct core signing components
        canonical_request, signed_headers = self._canonical_request(
            request=request, signing_properties=signing_properties, digest=digest
        )
        logger.debug("CanonicalRequest:\n%s", canonical_request)
        string_to_sign = self.string_to_sign(
            canonical_request=canonical_request,
            signing_properties=signing_properties,
        )
        logger.debug("StringToSign:\n%s", string_to_sign)
        key_chain = derive_signing_key(
            secret_key=identity.secret_access_key,
            date=signing_properties["date"],
            region=signing_properties["region"],
            service=signing_properties["service"],
        )
        signature = calculate_signature(
            signing_key=key_chain.signing_key, string_to_sign=string_to_sign
        )
        credential_scope = self._scope(signing_properties=signing_properties)
        authorization = self.generate_authorization_field(
            credential=f"{identity.access_key_id}/{credential_scope}",
            signed_headers=signed_headers,
            signature=signature,
        )
        request.fields.set_field(authorization)

        # Unless it was signed above, the token is attached after signing.
        if (
            identity.session_token is not None
            and SECURITY_TOKEN_HEADER not in request.fields
        ):
            request.fields.set_field(
                Field(name=SECURITY_TOKEN_HEADER, values=[identity.session_token])
            )
        logger.debug("Signed request with headers: %s", ";".join(signed_headers))
        return request

    def _normalize_host_field(self, *, uri: URI) -> str:
        if uri.port is not None and DEFAULT_PORTS.get(uri.scheme) == uri.port:
            uri_dict = uri.to_dict()
            uri_dict.update({"port": None})
            uri = URI(**uri_dict)
        return uri.netloc


class SigV4Signer(_BaseSigV4Signer):
    """Request signer for applying the AWS Signature Version 4 algorithm."""

    def sign(
        self,
        *,
        signing_properties: SigV4SigningProperties,
        http_request: AWSRequest,
        identity: Identity,
    ) -> AWSRequest:
        """Generate and apply a SigV4 Signature to a copy of the supplied request.

        Anonymous identities are not signed and get the supplied request back as is.
        The supplied request's fields are never modified, but a one-shot iterable
        body is consumed and replaced by a buffer on the returned copy.

        :param signing_properties: SigV4SigningProperties to define signing primitives
            such as the target service, region, and date.
        :param http_request: An AWSRequest to sign prior to sending to the service.
        :param identity: A set of credentials representing an AWS Identity or role
            capacity, or an :class:`AnonymousIdentity`.
        :raises PayloadSigningException: The body could not be read. A one-shot
            iterable body cannot be rewound, so it is left partly consumed on the
            supplied request.
        """
        if isinstance(identity, AnonymousIdentity):
            logger.debug("Anonymous identity supplied, skipping request signing.")
            return http_request

        # Copy and prepopulate any missing values in the
        # supplied request and signing properties.
        self._validate_identity(identity=identity)
        new_signing_properties = self._normalize_signing_properties(
            signing_properties=signing_properties
        )
        new_request = self._generate_new_request(
            request=http_request,
            signing_properties=new_signing_properties,
            identity=identity,
        )
        digest = self._digest_payload(
            request=new_request, signing_properties=new_signing_properties
        )
        return self._apply_signature(
            request=new_request,
            signing_properties=new_signing_properties,
            identity=identity,
            digest=digest,
        )

    def canonical_request(
        self, *, signing_properties: SigV4SigningProperties, request: AWSRequest
    ) -> str:
        """Build the canonical request ``sign`` would produce for ``request``.

        The signing date and any checksum fields are applied to a copy first, so
        the result matches the signed request exactly.

        :param signing_properties:
            SigV4SigningProperties to define signing primitives such as
            the target service, region, and date.
        :param request:
            An AWSRequest to use for generating a SigV4 signature.
        """
        new_signing_properties = self._normalize_signing_properties(
            signing_properties=signing_properties
        )
        new_request = deepcopy(request)
        new_request.fields.set_field(
            Field(name=DATE_HEADER, values=[new_signing_properties["date"]])
        )
        digest = self._digest_payload(
            request=new_request, signing_properties=new_signing_properties
        )
        canonical_request, _ = self._canonical_request(
            request=new_request,
            signing_properties=new_signing_properties,
            digest=digest,
        )
        return canonical_request

    def _digest_payload(
        self, *, request: AWSRequest, signing_properties: SigV4SigningProperties
    ) -> _PayloadDigest:
        checksum = self._payload_checksum(
            request=request, signing_properties=signing_properties
        )
        payload_hash = self._payload_sentinel(
            request=request, signing_properties=signing_properties
        )
        if payload_hash is not None and checksum is None:
            return _PayloadDigest(payload_hash=payload_hash)

        body_hash = self._read_body(request=request, checksum=checksum)
        return _PayloadDigest(payload_hash=payload_hash or body_hash, checksum=checksum)

    def _read_body(self, *, request: AWSRequest, checksum: Checksum | None) -> str:
        """Hash the body, feeding ``checksum`` along the way, and rewind it."""
        body = request.body
        payload_hash = sha256()

        if body is None:
            return EMPTY_SHA256_HASH

        if isinstance(body, bytes | bytearray):
            payload_hash.update(body)
            if checksum is not None:
                checksum.update(body)
            return payload_hash.hexdigest()

        if not isinstance(body, Iterable):
            raise TypeError(
                "An async body was attached to a synchronous signer. Please use "
                "AsyncSigV4Signer for async AWSRequests or ensure your body is "
                "of type Iterable[bytes]."
            )

        warnings.warn(
            "Payload signing is enabled. This may result in "
            "decreased performance for large request bodies.",
            AWSSDKWarning,
        )

        try:
            if isinstance(body, Seekable):
                position = body.tell()
                for chunk in body:
                    payload_hash.update(chunk)
                    if checksum is not None:
                        checksum.update(chunk)
                body.seek(position)
            else:
                buffer = io.BytesIO()
                for chunk in body:
                    buffer.write(chunk)
                    payload_hash.update(chunk)
                    if checksum is not None:
                        checksum.update(chunk)
                buffer.seek(0)
                request.body = buffer
        except OSError as e:
            raise PayloadSigningException(
                f"Unable to read the request body for signing: {e}"
            ) from e
        return payload_hash.hexdigest()


class AsyncSigV4Signer(_BaseSigV4Signer):
    """Request signer for applying the AWS Signature Version 4 algorithm to requests
    with asynchronous bodies."""

    async def sign(
        self,
        *,
        signing_properties: SigV4SigningProperties,
        http_request: AWSRequest,
        identity: Identity,
    ) -> AWSRequest:
        """Generate and apply a SigV4 Signature to a copy of the supplied request.

        :param signing_properties: SigV4SigningProperties to define signing primitives
            such as the target service, region, and date.
        :param http_request: An AWSRequest to sign prior to sending to the service.
        :param identity: A set of credentials representing an AWS Identity or role
            capacity, or an :class:`AnonymousIdentity`.
        :raises PayloadSigningException: The body could not be read. A one-shot
            async iterable body is left partly consumed on the supplied request.
        """
        if isinstance(identity, AnonymousIdentity):
            logger.debug("Anonymous identity supplied, skipping request signing.")
            return http_request

        self._validate_identity(identity=identity)
        new_signing_properties = self._normalize_signing_properties(
            signing_properties=signing_properties
        )
        new_request = self._generate_new_request(
            request=http_request,
            signing_properties=new_signing_properties,
            identity=identity,
        )
        digest = await self._digest_payload(
            request=new_request, signing_properties=new_signing_properties
        )
        return self._apply_signature(
            request=new_request,
            signing_properties=new_signing_properties,
            identity=identity,
            digest=digest,
        )

    async def canonical_request(
        self, *, signing_properties: SigV4SigningProperties, request: AWSRequest
    ) -> str:
        """Build the canonical request ``sign`` would produce for ``request``.

        :param signing_properties:
            SigV4SigningProperties to define signing primitives such as
            the target service, region, and date.
        :param request:
            An AWSRequest to use for generating a SigV4 signature.
        """
        new_signing_properties = self._normalize_signing_properties(
            signing_properties=signing_properties
        )
        new_request = deepcopy(request)
        new_request.fields.set_field(
            Field(name=DATE_HEADER, values=[new_signing_properties["date"]])
        )
        digest = await self._digest_payload(
            request=new_request, signing_properties=new_signing_properties
        )
        canonical_request, _ = self._canonical_request(
            request=new_request,
            signing_properties=new_signing_properties,
            digest=digest,
        )
        return canonical_request

    async def _digest_payload(
        self, *, request: AWSRequest, signing_properties: SigV4SigningProperties
    ) -> _PayloadDigest:
        checksum = self._payload_checksum(
            request=request, signing_properties=signing_properties
        )
        payload_hash = self._payload_sentinel(
            request=request, signing_properties=signing_properties
        )
        if payload_hash is not None and checksum is None:
            return _PayloadDigest(payload_hash=payload_hash)

        body_hash = await self._read_body(request=request, checksum=checksum)
        return _PayloadDigest(payload_hash=payload_hash or body_hash, checksum=checksum)

    async def _read_body(
        self, *, request: AWSRequest, checksum: Checksum | None
    ) -> str:
        body = request.body
        payload_hash = sha256()

        if body is None:
            return EMPTY_SHA256_HASH

        if isinstance(body, bytes | bytearray):
            payload_hash.update(body)
            if checksum is not None:
                checksum.update(body)
            return payload_hash.hexdigest()

        if not isinstance(body, AsyncIterable):
            raise TypeError(
                "A sync body was attached to an asynchronous signer. Please use "
                "SigV4Signer for sync AWSRequests or ensure your body is "
                "of type AsyncIterable[bytes]."
            )
        warnings.warn(
            "Payload signing is enabled. This may result in "
            "decreased performance for large request bodies.",
            AWSSDKWarning,
        )

        try:
            if isinstance(body, AsyncSeekable) and iscoroutinefunction(body.seek):
                position = body.tell()
                async for chunk in body:
                    payload_hash.update(chunk)
                    if checksum is not None:
                        checksum.update(chunk)
                await body.seek(position)
            else:
                buffer = io.BytesIO()
                async for chunk in body:
                    buffer.write(chunk)
                    payload_hash.update(chunk)
                    if checksum is not None:
                        checksum.update(chunk)
                buffer.seek(0)
                request.body = AsyncBytesReader(buffer)
        except OSError as e:
            raise PayloadSigningException(
                f"Unable to read the request body for signing: {e}"
            ) from e
        return payload_hash.hexdigest()
