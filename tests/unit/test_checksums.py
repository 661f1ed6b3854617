# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

import pytest
from aws_http_signer import (
    ChecksumAlgorithm,
    ChecksumDirective,
    Field,
    FieldPosition,
    Fields,
)
from aws_http_signer.checksums import (
    TRAILER_HEADER,
    encode_checksum,
    integrate_checksum,
    requires_payload_checksum,
)
from aws_http_signer.exceptions import PayloadSigningException


@pytest.mark.parametrize(
    "algorithm, data, expected",
    [
        (ChecksumAlgorithm.CRC32, b"123456789", "y/Q5Jg=="),
        (ChecksumAlgorithm.CRC32, b'{"TableName": "foo"}', "oL+a/g=="),
        (ChecksumAlgorithm.CRC32C, b"123456789", "4waSgw=="),
        (ChecksumAlgorithm.CRC64NVME, b"123456789", "rosUhgp5mIg="),
        (ChecksumAlgorithm.SHA1, b"", "2jmj7l5rSw0yVb/vlWAYkK/YBwk="),
        (
            ChecksumAlgorithm.SHA256,
            b"",
            "47DEQpj8HBSa+/TImW+5JCeuQeRkm5NMpJWZG3hSuFU=",
        ),
    ],
)
def test_compute(algorithm: ChecksumAlgorithm, data: bytes, expected: str) -> None:
    assert algorithm.compute(data) == expected


@pytest.mark.parametrize("algorithm", list(ChecksumAlgorithm))
def test_incremental_checksum_matches_one_shot(algorithm: ChecksumAlgorithm) -> None:
    checksum = algorithm.new_checksum()
    for chunk in (b"1234", b"", b"56789"):
        checksum.update(chunk)
    assert encode_checksum(checksum) == algorithm.compute(b"123456789")


def test_header_names() -> None:
    assert ChecksumAlgorithm.CRC32.header_name == "x-amz-checksum-crc32"
    assert ChecksumAlgorithm.CRC64NVME.header_name == "x-amz-checksum-crc64nvme"
    directive = ChecksumDirective(algorithm=ChecksumAlgorithm.SHA1)
    assert directive.field_name == "x-amz-checksum-sha1"
    assert not directive.in_trailer
    custom = ChecksumDirective(
        algorithm=ChecksumAlgorithm.SHA1, header_name="x-amzn-custom-sha1"
    )
    assert custom.field_name == "x-amzn-custom-sha1"


def test_requires_payload_checksum() -> None:
    fields = Fields()
    header = ChecksumDirective(algorithm=ChecksumAlgorithm.CRC32)
    assert requires_payload_checksum(header, fields)
    assert not requires_payload_checksum(
        ChecksumDirective(algorithm=ChecksumAlgorithm.CRC32, value="AAAAAA=="), fields
    )
    assert not requires_payload_checksum(
        ChecksumDirective(
            algorithm=ChecksumAlgorithm.CRC32, placement=FieldPosition.TRAILER
        ),
        fields,
    )
    fields.set_field(Field(name="X-Amz-Checksum-CRC32", values=["AAAAAA=="]))
    assert not requires_payload_checksum(header, fields)


def test_integrate_header_checksum() -> None:
    fields = Fields()
    checksum = ChecksumAlgorithm.CRC32.new_checksum()
    checksum.update(b"123456789")
    integrate_checksum(
        fields=fields,
        directive=ChecksumDirective(algorithm=ChecksumAlgorithm.CRC32),
        checksum=checksum,
    )
    assert fields["x-amz-checksum-crc32"] == Field(
        name="x-amz-checksum-crc32", values=["y/Q5Jg=="]
    )


def test_integrate_header_checksum_prefers_supplied_value() -> None:
    fields = Fields()
    integrate_checksum(
        fields=fields,
        directive=ChecksumDirective(
            algorithm=ChecksumAlgorithm.SHA256, value="precomputed"
        ),
        checksum=None,
    )
    assert fields["x-amz-checksum-sha256"].values == ["precomputed"]


def test_integrate_header_checksum_keeps_existing_field() -> None:
    fields = Fields([Field(name="x-amz-checksum-crc32", values=["existing"])])
    integrate_checksum(
        fields=fields,
        directive=ChecksumDirective(algorithm=ChecksumAlgorithm.CRC32, value="other"),
        checksum=None,
    )
    assert fields["x-amz-checksum-crc32"].values == ["existing"]
    assert fields["x-amz-checksum-crc32"].kind is FieldPosition.HEADER


def test_integrate_header_checksum_without_payload() -> None:
    with pytest.raises(PayloadSigningException):
        integrate_checksum(
            fields=Fields(),
            directive=ChecksumDirective(algorithm=ChecksumAlgorithm.CRC32),
            checksum=None,
        )


def test_integrate_trailer_checksum() -> None:
    fields = Fields()
    directive = ChecksumDirective(
        algorithm=ChecksumAlgorithm.CRC32C, placement=FieldPosition.TRAILER
    )
    integrate_checksum(fields=fields, directive=directive, checksum=None)
    integrate_checksum(fields=fields, directive=directive, checksum=None)
    assert fields[TRAILER_HEADER].values == ["x-amz-checksum-crc32c"]
    assert "x-amz-checksum-crc32c" not in fields


def test_integrate_trailer_checksum_appends_to_declared_trailers() -> None:
    fields = Fields([Field(name="X-Amz-Trailer", values=["x-amz-meta-digest"])])
    integrate_checksum(
        fields=fields,
        directive=ChecksumDirective(
            algorithm=ChecksumAlgorithm.SHA1, placement=FieldPosition.TRAILER
        ),
        checksum=None,
    )
    assert fields[TRAILER_HEADER].values == [
        "x-amz-meta-digest",
        "x-amz-checksum-sha1",
    ]


def test_integrate_trailer_checksum_moves_known_value_to_trailers() -> None:
    fields = Fields([Field(name="x-amz-checksum-crc32", values=["AAAAAA=="])])
    trailers = Fields()
    integrate_checksum(
        fields=fields,
        directive=ChecksumDirective(
            algorithm=ChecksumAlgorithm.CRC32, placement=FieldPosition.TRAILER
        ),
        checksum=None,
        trailers=trailers,
    )
    assert "x-amz-checksum-crc32" not in fields
    assert fields[TRAILER_HEADER].values == ["x-amz-checksum-crc32"]
    assert list(trailers) == [
        Field(
            name="x-amz-checksum-crc32",
            values=["AAAAAA=="],
            kind=FieldPosition.TRAILER,
        )
    ]


def test_integrate_trailer_checksum_with_supplied_value() -> None:
    fields = Fields()
    trailers = Fields()
    integrate_checksum(
        fields=fields,
        directive=ChecksumDirective(
            algorithm=ChecksumAlgorithm.SHA256,
            placement=FieldPosition.TRAILER,
            value="precomputed",
        ),
        checksum=None,
        trailers=trailers,
    )
    assert "x-amz-checksum-sha256" not in fields
    assert trailers["x-amz-checksum-sha256"].values == ["precomputed"]
