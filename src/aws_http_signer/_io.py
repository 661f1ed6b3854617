# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from collections.abc import AsyncIterable, AsyncIterator
from inspect import iscoroutinefunction
from io import BytesIO
from typing import cast

from .interfaces.io import AsyncByteStream, ByteStream

_DEFAULT_CHUNK_SIZE = 1024


class AsyncBytesReader:
    """A file-like object with an async read method."""

    _data: ByteStream | AsyncByteStream | AsyncIterable[bytes] | None
    _closed = False

    def __init__(
        self,
        data: bytes | bytearray | ByteStream | AsyncByteStream | AsyncIterable[bytes],
    ):
        """Initializes self.

        Data is read from the source on an as-needed basis and is not buffered.

        :param data: The source data to read from.
        """
        self._remainder = b""
        if isinstance(data, bytes | bytearray):
            self._data = BytesIO(data)
        else:
            self._data = data

    async def read(self, size: int = -1) -> bytes:
        """Read a number of bytes from the stream.

        :param size: The maximum number of bytes to read. If less than 0, all bytes will
            be read.
        """
        if self._closed or self._data is None:
            raise ValueError("I/O operation on closed file.")

        # runtime_checkable can't tell sync and async read methods apart.
        if isinstance(self._data, ByteStream) and not iscoroutinefunction(
            self._data.read
        ):
            return self._data.read(size)

        if isinstance(self._data, AsyncByteStream):
            return await self._data.read(size)

        return await self._read_from_iterable(
            cast(AsyncIterable[bytes], self._data), size
        )

    async def _read_from_iterable(
        self, iterator: AsyncIterable[bytes], size: int
    ) -> bytes:
        result = self._remainder
        if size < 0:
            async for element in iterator:
                result += element
            self._remainder = b""
            return result

        if len(result) < size:
            async for element in iterator:
                result += element
                if len(result) >= size:
                    break

        self._remainder = result[size:]
        return result[:size]

    def __aiter__(self) -> AsyncIterator[bytes]:
        return self.iter_chunks()

    async def iter_chunks(
        self, chunk_size: int = _DEFAULT_CHUNK_SIZE
    ) -> AsyncIterator[bytes]:
        """Iterate over the reader in chunks of a given size."""
        while chunk := await self.read(chunk_size):
            yield chunk

    def close(self) -> None:
        self._data = None
        self._closed = True
