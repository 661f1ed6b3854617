# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Flexible payload checksums and how they are announced to the service.

A checksum is either sent as a regular header, in which case it is computed up
front and signed like any other header, or as a trailer after a streamed body.
Trailer values can't be known at signing time, so only the trailer's name is
signed, through the ``x-amz-trailer`` header.
"""

import base64
import hashlib
import logging
from binascii import crc32
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from awscrt import checksums as crt_checksums

from ._http import Field, Fields
from .exceptions import PayloadSigningException
from .interfaces.http import FieldPosition

logger = logging.getLogger(__name__)

TRAILER_HEADER = "x-amz-trailer"


class Checksum(Protocol):
    """An incremental payload checksum."""

    def update(self, data: bytes, /) -> None: ...

    def digest(self) -> bytes: ...


class _CrcChecksum:
    def __init__(self, crc_function: Callable[[bytes, int], int], size: int):
        self._crc_function = crc_function
        self._size = size
        self._value = 0

    def update(self, data: bytes, /) -> None:
        self._value = self._crc_function(data, self._value)

    def digest(self) -> bytes:
        return self._value.to_bytes(self._size, byteorder="big")


class ChecksumAlgorithm(Enum):
    """Supported flexible checksum algorithms.

    New algorithms are added as members here, each mapping to a checksum
    factory in ``_CHECKSUM_FACTORIES``.
    """

    CRC32 = "CRC32"
    CRC32C = "CRC32C"
    CRC64NVME = "CRC64NVME"
    SHA1 = "SHA1"
    SHA256 = "SHA256"

    @property
    def header_name(self) -> str:
        """The conventional field name, for example ``x-amz-checksum-crc32``."""
        return f"x-amz-checksum-{self.value.lower()}"

    def new_checksum(self) -> Checksum:
        """Create a fresh incremental checksum for this algorithm."""
        return _CHECKSUM_FACTORIES[self]()

    def compute(self, data: bytes) -> str:
        """Checksum ``data`` in one shot and return the base64 encoded digest."""
        checksum = self.new_checksum()
        checksum.update(data)
        return encode_checksum(checksum)


_CHECKSUM_FACTORIES: dict[ChecksumAlgorithm, Callable[[], Checksum]] = {
    ChecksumAlgorithm.CRC32: lambda: _CrcChecksum(crc32, 4),
    ChecksumAlgorithm.CRC32C: lambda: _CrcChecksum(crt_checksums.crc32c, 4),
    ChecksumAlgorithm.CRC64NVME: lambda: _CrcChecksum(crt_checksums.crc64nvme, 8),
    ChecksumAlgorithm.SHA1: hashlib.sha1,
    ChecksumAlgorithm.SHA256: hashlib.sha256,
}


def encode_checksum(checksum: Checksum) -> str:
    return base64.b64encode(checksum.digest()).decode("ascii")


@dataclass(kw_only=True, frozen=True)
class ChecksumDirective:
    """Instructs a signer to attach a payload checksum to the request."""

    algorithm: ChecksumAlgorithm
    """Which checksum to compute."""

    header_name: str | None = None
    """Field carrying the checksum. Defaults to ``algorithm.header_name``."""

    placement: FieldPosition = FieldPosition.HEADER
    """Whether the checksum is sent as a signed header or as a trailer."""

    value: str | None = None
    """A precomputed checksum. When set it is used as is and never recomputed.

    With trailer placement the value is handed over in ``AWSRequest.trailers``.
    """

    @property
    def field_name(self) -> str:
        return self.header_name or self.algorithm.header_name

    @property
    def in_trailer(self) -> bool:
        return self.placement is FieldPosition.TRAILER


def requires_payload_checksum(directive: ChecksumDirective, fields: Fields) -> bool:
    """Whether the payload has to be read to satisfy ``directive``.

    Only header checksums without a pre-supplied value need the body up front.
    """
    if directive.in_trailer or directive.value is not None:
        return False
    return directive.field_name not in fields


def integrate_checksum(
    *,
    fields: Fields,
    directive: ChecksumDirective,
    checksum: Checksum | None,
    trailers: Fields | None = None,
) -> None:
    """Apply ``directive`` to ``fields`` ahead of canonicalization.

    :param fields: The signer's private copy of the request fields.
    :param directive: The checksum instructions from the caller.
    :param checksum: A checksum fed with the full payload, required only when
        :func:`requires_payload_checksum` is true.
    :param trailers: Receives a trailer checksum value that is already known, so
        the streaming encoder can send it after the body.
    """
    name = directive.field_name
    if directive.in_trailer:
        _declare_trailer(fields=fields, directive=directive, trailers=trailers)
        return

    if name in fields:
        logger.debug("Keeping pre-existing value for checksum field %s", name)
        fields[name].kind = FieldPosition.HEADER
        return

    if directive.value is not None:
        value = directive.value
    elif checksum is not None:
        value = encode_checksum(checksum)
    else:
        raise PayloadSigningException(
            f"A {directive.algorithm.value} checksum was requested in the {name} "
            "header, but the request payload was not available to compute it."
        )
    fields.set_field(Field(name=name, values=[value]))


def _declare_trailer(
    *, fields: Fields, directive: ChecksumDirective, trailers: Fields | None
) -> None:
    name = directive.field_name
    existing = fields.get(TRAILER_HEADER)
    declared = [] if existing is None else [v.strip().lower() for v in existing.values]
    if name.lower() not in declared:
        fields.append_value(TRAILER_HEADER, name)

    # The target never travels as a header. A value that is already known moves
    # to the trailers.
    known = fields.get(name)
    if known is not None:
        del fields[name]
        values = known.values
    elif directive.value is not None:
        values = [directive.value]
    else:
        return
    if trailers is None:
        logger.debug("Dropping known value for trailer %s, no trailers given", name)
        return
    trailers.set_field(Field(name=name, values=values, kind=FieldPosition.TRAILER))
