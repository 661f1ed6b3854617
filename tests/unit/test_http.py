# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from copy import deepcopy

import pytest
from aws_http_signer import (
    URI,
    AsyncBytesReader,
    AWSRequest,
    Field,
    FieldPosition,
    Fields,
    QueryParameters,
)


def test_field_as_string() -> None:
    assert Field(name="foo").as_string() == ""
    assert Field(name="foo", values=["a b"]).as_string() == "a b"
    assert Field(name="foo", values=["a", "b,c", 'd"']).as_string() == (
        'a,"b,c","d\\""'
    )


def test_fields_are_case_insensitive() -> None:
    fields = Fields([Field(name="Content-Type", values=["text/plain"])])
    assert "content-type" in fields
    assert fields["CONTENT-TYPE"].values == ["text/plain"]
    del fields["content-TYPE"]
    assert len(fields) == 0


def test_fields_rejects_duplicate_initial_names() -> None:
    with pytest.raises(ValueError):
        Fields([Field(name="foo"), Field(name="FOO")])


def test_fields_append_value() -> None:
    fields = Fields()
    fields.append_value("Foo", "bar")
    fields.append_value("foo", "baz")
    assert fields["FOO"] == Field(name="Foo", values=["bar", "baz"])


def test_fields_get_by_type() -> None:
    header = Field(name="header", values=["1"])
    trailer = Field(name="trailer", values=["2"], kind=FieldPosition.TRAILER)
    fields = Fields([header, trailer])
    assert fields.get_by_type(FieldPosition.HEADER) == [header]
    assert fields.get_by_type(FieldPosition.TRAILER) == [trailer]


@pytest.mark.parametrize(
    "query, expected",
    [
        (None, []),
        ("", []),
        ("acl", [("acl", None)]),
        ("acl=", [("acl", "")]),
        ("a=1&&b=2&a=3", [("a", "1"), ("a", "3"), ("b", "2")]),
        ("key=a%20b+c", [("key", "a b c")]),
        ("=value", [("", "value")]),
    ],
)
def test_query_parameters_from_string(
    query: str | None, expected: list[tuple[str, str | None]]
) -> None:
    assert QueryParameters.from_string(query).items() == expected


def test_query_parameters_as_string() -> None:
    params = QueryParameters([("b", "x y"), ("flag", None), ("b", "")])
    assert params.as_string() == "b=x%20y&b=&flag"
    assert params["b"] == ["x y", ""]
    assert "flag" in params
    assert len(params) == 2


def test_query_parameters_set() -> None:
    params = QueryParameters([("a", "1"), ("a", "2")])
    params.set("a", ["3"])
    assert params == QueryParameters([("a", "3")])


def test_request_parses_query_from_destination() -> None:
    request = AWSRequest(
        destination=URI(host="example.com", path="/", query="Foo=bar&acl"),
        method="GET",
        body=None,
        fields=Fields(),
    )
    assert request.query_params.items() == [("Foo", "bar"), ("acl", None)]


def test_request_deepcopy_shares_body() -> None:
    body = iter([b"data"])
    request = AWSRequest(
        destination=URI(host="example.com"),
        method="PUT",
        body=body,
        fields=Fields([Field(name="foo", values=["bar"])]),
        query_params=QueryParameters([("a", "1")]),
        trailers=Fields([Field(name="t", values=["1"], kind=FieldPosition.TRAILER)]),
    )
    copied = deepcopy(request)
    copied.fields.append_value("foo", "baz")
    copied.query_params.add("b")
    copied.trailers["t"].add("2")

    assert copied.body is body
    assert request.fields["foo"].values == ["bar"]
    assert request.query_params.items() == [("a", "1")]
    assert request.trailers["t"].values == ["1"]


def test_uri_netloc() -> None:
    uri = URI(
        scheme="http",
        username="user",
        password="pass",
        host="example.com",
        port=8080,
        path="/path",
        query="a=1",
        fragment="frag",
    )
    assert uri.netloc == "user:pass@example.com:8080"
    assert URI(host="example.com").netloc == "example.com"
    assert URI(**uri.to_dict()) == uri


def test_request_sync_query_rewrites_diverging_destination() -> None:
    request = AWSRequest(
        destination=URI(host="example.com", path="/", query="stale=1", fragment="f"),
        method="GET",
        body=None,
        fields=Fields(),
        query_params=QueryParameters([("acl", None), ("key", "a/b")]),
    )
    request.sync_query()
    assert request.destination == URI(
        host="example.com", path="/", query="acl&key=a%2Fb", fragment="f"
    )


def test_request_sync_query_clears_emptied_query() -> None:
    request = AWSRequest(
        destination=URI(host="example.com", query="a=1"),
        method="GET",
        body=None,
        fields=Fields(),
        query_params=QueryParameters(),
    )
    request.sync_query()
    assert request.destination.query is None


async def test_async_bytes_reader() -> None:
    reader = AsyncBytesReader(b"123456789")
    assert await reader.read(4) == b"1234"
    assert [chunk async for chunk in reader.iter_chunks(3)] == [b"567", b"89"]
    reader.close()
    with pytest.raises(ValueError):
        await reader.read()


async def test_async_bytes_reader_from_async_iterable() -> None:
    async def chunks():
        yield b"12"
        yield b"345"

    reader = AsyncBytesReader(chunks())
    assert await reader.read(3) == b"123"
    assert await reader.read() == b"45"
