# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol, TypeAlias, runtime_checkable


@runtime_checkable
class AWSCredentialsIdentity(Protocol):
    """Anything carrying a resolved AWS key pair.

    Credential providers may return their own types; the signers only rely on the
    attributes below.
    """

    access_key_id: str
    secret_access_key: str
    session_token: str | None
    expiration: datetime | None

    @property
    def is_expired(self) -> bool: ...


@dataclass(kw_only=True, frozen=True)
class AWSCredentialIdentity:
    """A keyed identity used to compute SigV4 signatures."""

    access_key_id: str
    """A unique identifier for an AWS user or role."""

    secret_access_key: str
    """The secret key paired with ``access_key_id``. Never transmitted."""

    session_token: str | None = None
    """A temporary token for the current session, sent as
    ``X-Amz-Security-Token``."""

    expiration: datetime | None = None
    """When the credentials stop being valid. Must be timezone aware."""

    @property
    def is_expired(self) -> bool:
        if self.expiration is None:
            return False
        return datetime.now(tz=UTC) >= self.expiration

    def __repr__(self) -> str:
        return f"AWSCredentialIdentity(access_key_id={self.access_key_id!r}, ...)"


@dataclass(frozen=True)
class AnonymousIdentity:
    """Placeholder identity for requests that must be sent unsigned."""


Identity: TypeAlias = AWSCredentialIdentity | AnonymousIdentity | AWSCredentialsIdentity
