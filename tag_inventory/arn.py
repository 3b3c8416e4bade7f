"""ARN parsing helpers.

An ARN looks like ``arn:partition:service:region:account:resource``.  The
resource part may itself contain ``:`` or ``/`` separators, e.g.
``instance/i-0123`` for EC2 or ``function:my-fn`` for Lambda.
"""

from __future__ import annotations

import re

from tag_inventory.errors import InvalidIdentifierFormat

# Segments that precede the resource part: arn, partition, service, region, account
ARN_PREFIX_SEGMENTS = 5

# aws, aws-cn, aws-us-gov, aws-iso, aws-iso-b, ...
_PARTITION_RE = re.compile(r"^arn:(aws(?:-[a-z]+)*):")


def _require_prefix(arn: str) -> re.Match[str]:
    match = _PARTITION_RE.match(arn or "")
    if match is None:
        raise InvalidIdentifierFormat(arn, "missing 'arn:aws:' partition prefix")
    return match


def _split(arn: str) -> list[str]:
    parts = (arn or "").split(":")
    if len(parts) <= ARN_PREFIX_SEGMENTS:
        raise InvalidIdentifierFormat(
            arn, f"expected at least {ARN_PREFIX_SEGMENTS + 1} colon-delimited segments"
        )
    return parts


def partition_from_arn(arn: str) -> str:
    """Return the partition (``aws``, ``aws-cn``, ...) of *arn*."""
    return _require_prefix(arn).group(1)


def service_from_arn(arn: str) -> str:
    """Return the service token that follows the partition prefix.

    >>> service_from_arn("arn:aws:ec2:eu-west-1:111111111111:instance/i-0123")
    'ec2'
    """
    match = _require_prefix(arn)
    service = arn[match.end():].split(":", 1)[0]
    if not service:
        raise InvalidIdentifierFormat(arn, "no service segment after the partition prefix")
    return service


def region_from_arn(arn: str) -> str:
    """Return the region segment of *arn*, or ``""`` for global resources."""
    return _split(arn)[3]


def account_from_arn(arn: str) -> str:
    """Return the account id of *arn*, or ``""`` for account-less ARNs (S3 buckets)."""
    return _split(arn)[4]


def short_arn(arn: str) -> str:
    """Drop partition, service, region and account from *arn*.

    The remaining segments are joined with ``/`` so that ``function:my-fn``
    and ``instance/i-0123`` end up in the same ``label/value`` shape.
    """
    short = "/".join(_split(arn)[ARN_PREFIX_SEGMENTS:])
    if not short:
        raise InvalidIdentifierFormat(arn, "empty resource part")
    return short
