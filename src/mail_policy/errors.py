# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Exception taxonomy of the policy engine.

- ``PolicyDenial``: an expected decision carrying an SMTP response code.
- ``InfrastructureFailure``: store or network errors, propagated to the host.
- ``InsufficientIdentityInfo`` / ``UserNotFound``: data integrity anomalies,
  handled as infrastructure failures.
- ``SRSError`` and subclasses: address rewriting errors. Rewrite failures are
  non-fatal degradations, reverse failures are reported to the caller.
- ``SMTPResponseError``: what the host transport receives through the hook
  completion callback.
"""

from __future__ import annotations


class PolicyError(Exception):
    """Base class for all policy engine errors."""


class PolicyDenial(PolicyError):
    """A deliberate policy decision rejecting the current SMTP command."""

    def __init__(self, response_code: int, reason: str):
        super().__init__(reason)
        self.response_code = response_code
        self.reason = reason


class InfrastructureFailure(PolicyError):
    """A lookup or store failure not tied to a policy decision."""


class InsufficientIdentityInfo(InfrastructureFailure):
    """The envelope carries no authenticated user to resolve."""

    def __init__(self, message: str = "Insufficient user info"):
        super().__init__(message)


class UserNotFound(InfrastructureFailure):
    """The identity store has no record for the authenticated user."""

    def __init__(self, username: str):
        super().__init__(f'User "{username}" was not found')
        self.username = username


class SRSError(PolicyError):
    """Base class for Sender Rewriting Scheme errors."""


class InvalidOrTamperedToken(SRSError):
    """The SRS address is malformed or its signature does not match."""


class ExpiredToken(SRSError):
    """The SRS address carries a timestamp older than the allowed age."""


class SMTPResponseError(Exception):
    """Error handed to the host transport through a hook completion callback.

    Attributes:
        response_code: SMTP reply code the host should answer with.
    """

    def __init__(self, message: str, response_code: int):
        super().__init__(message)
        self.response_code = response_code
        self.name = "SMTPResponse"


__all__ = [
    "ExpiredToken",
    "InfrastructureFailure",
    "InsufficientIdentityInfo",
    "InvalidOrTamperedToken",
    "PolicyDenial",
    "PolicyError",
    "SMTPResponseError",
    "SRSError",
    "UserNotFound",
]
