# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0
"""AWS HTTP Signer provides stand-alone AWS Signature Version 4 request signing,
including flexible payload checksums sent as headers or trailers."""

from __future__ import annotations

from ._http import AWSRequest, Field, Fields, QueryParameters, URI
from ._identity import AnonymousIdentity, AWSCredentialIdentity
from ._io import AsyncBytesReader
from .checksums import ChecksumAlgorithm, ChecksumDirective
from .interfaces.http import FieldPosition
from .signers import (
    AsyncSigV4Signer,
    SigV4Signer,
    SigV4SigningProperties,
)

__license__ = "Apache-2.0"
__version__ = "0.1.0"

__all__ = (
    "URI",
    "AWSCredentialIdentity",
    "AWSRequest",
    "AnonymousIdentity",
    "AsyncBytesReader",
    "AsyncSigV4Signer",
    "ChecksumAlgorithm",
    "ChecksumDirective",
    "Field",
    "FieldPosition",
    "Fields",
    "QueryParameters",
    "SigV4Signer",
    "SigV4SigningProperties",
)
