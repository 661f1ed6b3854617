# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Credential scope, signing key derivation and the final signature."""

import hmac
from dataclasses import dataclass
from hashlib import sha256

from .exceptions import MissingExpectedParameterException

SIGNING_ALGORITHM: str = "AWS4-HMAC-SHA256"
SCOPE_TERMINATOR: str = "aws4_request"


@dataclass(frozen=True)
class SigningKeyChain:
    """The HMAC keys derived from a secret key, one per scope component.

    Only ``signing_key`` is needed to sign. The intermediate keys are kept so
    each step of the derivation can be checked on its own.
    """

    date_key: bytes
    region_key: bytes
    service_key: bytes
    signing_key: bytes


def credential_scope(*, date: str, region: str, service: str) -> str:
    """Scope format: ``<YYYYMMDD>/<AWS Region>/<AWS Service>/aws4_request``.

    :param date: The signing timestamp or just its date part.
    """
    _check_scope_components(date=date, region=region, service=service)
    return f"{date[0:8]}/{region}/{service}/{SCOPE_TERMINATOR}"


def derive_signing_key(
    *, secret_key: str, date: str, region: str, service: str
) -> SigningKeyChain:
    """Derive the signing key scoped to a specific day, region and service.

    The date, region, service and terminator are individually hashed, each step
    keyed by the result of the previous one.
    """
    # DateKey              = HMAC-SHA256("AWS4"+"<SecretAccessKey>", "<YYYYMMDD>")
    # DateRegionKey        = HMAC-SHA256(<DateKey>, "<aws-region>")
    # DateRegionServiceKey = HMAC-SHA256(<DateRegionKey>, "<aws-service>")
    # SigningKey           = HMAC-SHA256(<DateRegionServiceKey>, "aws4_request")
    _check_scope_components(date=date, region=region, service=service)
    k_date = _hmac(key=f"AWS4{secret_key}".encode(), value=date[0:8])
    k_region = _hmac(key=k_date, value=region)
    k_service = _hmac(key=k_region, value=service)
    k_signing = _hmac(key=k_service, value=SCOPE_TERMINATOR)
    return SigningKeyChain(
        date_key=k_date,
        region_key=k_region,
        service_key=k_service,
        signing_key=k_signing,
    )


def string_to_sign(*, timestamp: str, scope: str, canonical_request: str) -> str:
    """Build the string to sign.

    The SigV4 specification defines the string to sign as::

        Algorithm \\n
        RequestDateTime \\n
        CredentialScope  \\n
        HashedCanonicalRequest
    """
    return (
        f"{SIGNING_ALGORITHM}\n"
        f"{timestamp}\n"
        f"{scope}\n"
        f"{sha256(canonical_request.encode()).hexdigest()}"
    )


def calculate_signature(*, signing_key: bytes, string_to_sign: str) -> str:
    """Sign the string to sign, returning a lowercase hex digest."""
    return _hmac(key=signing_key, value=string_to_sign).hex()


def _hmac(*, key: bytes, value: str) -> bytes:
    return hmac.new(key=key, msg=value.encode(), digestmod=sha256).digest()


def _check_scope_components(*, date: str, region: str, service: str) -> None:
    missing = [
        name
        for name, value in (("date", date), ("region", region), ("service", service))
        if not value
    ]
    if missing:
        raise MissingExpectedParameterException(
            f"SigV4 signing requires non-empty {', '.join(missing)} to build the "
            "credential scope."
        )
