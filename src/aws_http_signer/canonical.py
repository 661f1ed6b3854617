# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""Construction of the SigV4 canonical request.

The canonical request is a standardized string laying out the components used in
the SigV4 signing algorithm. This is useful to quickly compare inputs to find
signature mismatches and unintended variances. It is defined as::

    <HTTPMethod>\\n
    <CanonicalURI>\\n
    <CanonicalQueryString>\\n
    <CanonicalHeaders>\\n
    <SignedHeaders>\\n
    <HashedPayload>

Every function here works on copies. Nothing reorders the request that is sent.
"""

from collections.abc import Collection
from urllib.parse import quote

from ._http import QueryParameters
from .interfaces.http import FieldPosition, Fields


def canonical_request(
    *,
    method: str,
    path: str | None,
    query_params: QueryParameters,
    fields: Fields,
    host: str,
    payload_hash: str,
    excluded_headers: Collection[str],
    uri_encode_path: bool = True,
) -> str:
    """Build the canonical request string.

    :param method: The HTTP method, upper-cased in the output.
    :param path: The encoded request path.
    :param query_params: The query parameters to sign.
    :param fields: The request fields. Only ``HEADER`` fields are considered.
    :param host: Value used for the ``host`` header when ``fields`` has none.
    :param payload_hash: The hashed payload or one of the payload sentinels.
    :param excluded_headers: Lower-cased header names that are never signed.
    :param uri_encode_path: Whether to normalize and encode the path again.
    """
    signed_fields = signing_fields(
        fields=fields, host=host, excluded_headers=excluded_headers
    )
    return format_canonical_request(
        method=method,
        path=path,
        query_params=query_params,
        signed_fields=signed_fields,
        payload_hash=payload_hash,
        uri_encode_path=uri_encode_path,
    )


def format_canonical_request(
    *,
    method: str,
    path: str | None,
    query_params: QueryParameters,
    signed_fields: dict[str, str],
    payload_hash: str,
    uri_encode_path: bool = True,
) -> str:
    """Lay out the canonical request from headers already picked by
    :func:`signing_fields`.

    The keys of ``signed_fields`` are also the ``SignedHeaders`` of the
    ``Authorization`` field, so callers that need both pass the same mapping.
    """
    return (
        f"{method.upper()}\n"
        f"{canonical_path(path, uri_encode_path=uri_encode_path)}\n"
        f"{canonical_query(query_params)}\n"
        f"{canonical_headers(signed_fields)}\n"
        f"{';'.join(signed_fields)}\n"
        f"{payload_hash}"
    )


def canonical_path(path: str | None, *, uri_encode_path: bool = True) -> str:
    """Normalize the request path.

    When ``uri_encode_path`` is set the already-encoded path is encoded a second
    time, so ``%2F`` becomes ``%252F``. S3 disables this and signs the path as sent.
    """
    if not path:
        return "/"

    if uri_encode_path:
        normalized_path = remove_dot_segments(path)
        return quote(string=normalized_path, safe="/")
    else:
        return remove_dot_segments(path, remove_consecutive_slashes=False)


def canonical_query(query_params: QueryParameters) -> str:
    """Encode, sort and join the query parameters.

    Parameters without a name are dropped. A parameter without a value is signed
    as ``name=``.
    """
    query_parts = [
        (quote(string=name, safe=""), quote(string=value or "", safe=""))
        for name, value in query_params.items()
        if name
    ]
    # key-value pairs must be in sorted order for their encoded forms.
    return "&".join(f"{name}={value}" for name, value in sorted(query_parts))


def signing_fields(
    *, fields: Fields, host: str, excluded_headers: Collection[str]
) -> dict[str, str]:
    """Select the signed headers and fold their values.

    :returns: Lower-cased header names mapped to their canonical values, in
        ascending name order.
    """
    normalized_fields: dict[str, str] = {}
    for field in fields.get_by_type(FieldPosition.HEADER):
        name = field.name.lower()
        if name in excluded_headers:
            continue
        normalized_fields[name] = ",".join(
            fold_field_value(value) for value in field.values
        )
    if "host" not in normalized_fields:
        normalized_fields["host"] = host
    return dict(sorted(normalized_fields.items()))


def signed_header_names(
    *, fields: Fields, host: str, excluded_headers: Collection[str]
) -> str:
    """The ``;`` separated list used in the ``SignedHeaders`` component."""
    return ";".join(
        signing_fields(fields=fields, host=host, excluded_headers=excluded_headers)
    )


def canonical_headers(fields: dict[str, str]) -> str:
    return "".join(f"{name}:{value}\n" for name, value in fields.items())


def fold_field_value(value: str) -> str:
    """Trim a header value and collapse internal whitespace to single spaces.

    A value wrapped entirely in double quotes is unwrapped first.
    """
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] == '"':
        value = value[1:-1]
    return " ".join(value.split())


def remove_dot_segments(path: str, remove_consecutive_slashes: bool = True) -> str:
    """Removes dot segments from a path per :rfc:`3986#section-5.2.4`.

    Optionally removes consecutive slashes, true by default.
    :param path: The path to modify.
    :param remove_consecutive_slashes: Whether to remove consecutive slashes.
    :returns: The path with dot segments removed.
    """
    output: list[str] = []
    for segment in path.split("/"):
        if segment == ".":
            continue
        elif segment != "..":
            output.append(segment)
        elif output:
            output.pop()
    if path.startswith("/") and (not output or output[0]):
        output.insert(0, "")
    if output and path.endswith(("/.", "/..")):
        output.append("")
    result = "/".join(output)
    if remove_consecutive_slashes:
        while "//" in result:
            result = result.replace("//", "/")
    return result
