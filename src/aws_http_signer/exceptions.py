# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0


class AWSSDKWarning(UserWarning): ...


class BaseAWSSDKException(Exception):
    """Top-level exception to capture SDK-related errors."""


class MissingExpectedParameterException(BaseAWSSDKException, ValueError):
    """A signing property required for SigV4 is absent, empty or malformed."""


class PayloadSigningException(BaseAWSSDKException):
    """The request body could not be read to hash or checksum it."""
