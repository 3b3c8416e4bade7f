"""Exception types raised while parsing ARNs and collecting resources."""

from __future__ import annotations


class InventoryError(Exception):
    """Base class for every error raised by tag-inventory."""


class InvalidIdentifierFormat(InventoryError, ValueError):
    """A fully-qualified ARN does not have the expected colon-delimited shape."""

    def __init__(self, arn: str, reason: str) -> None:
        self.arn = arn
        self.reason = reason
        super().__init__(f"Invalid ARN {arn!r}: {reason}")


class MalformedResourceIdentifier(InventoryError, ValueError):
    """A shortened identifier does not match its service's decomposition rule."""

    def __init__(self, identifier: str, service: str, reason: str) -> None:
        self.identifier = identifier
        self.service = service
        self.reason = reason
        super().__init__(f"Malformed {service} resource identifier {identifier!r}: {reason}")


class ApiRequestFailed(InventoryError):
    """The tag-search API call failed and retries were exhausted (or pointless)."""

    def __init__(self, region: str, attempts: int | None, message: str) -> None:
        self.region = region
        self.attempts = attempts
        if attempts is None:
            super().__init__(f"GetResources failed in {region}: {message}")
        else:
            super().__init__(
                f"GetResources failed in {region} after {attempts} attempt(s): {message}"
            )


class AwsSetupFailed(InventoryError):
    """The boto3 session or a tagging client could not be created."""


class CollectionCancelled(InventoryError):
    """Collection of a region was stopped before it finished."""

    def __init__(self, region: str) -> None:
        self.region = region
        super().__init__(f"Collection cancelled in {region}")
