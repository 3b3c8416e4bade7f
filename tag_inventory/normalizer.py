"""Turn ARNs into :class:`TaggedResource` records.

Each service maps to a decomposition rule that splits the shortened ARN into
a product label and an id.  Services without a registered rule fall back to
the generic rule, which keeps the shortened ARN as the id.

    ec2    instance/i-23123jj1k1k23jh12   -> product=instance, id=i-23123jj1k1k23jh12
    ecs    cluster/some-ecs-cluster       -> product=cluster,  id=some-ecs-cluster
    s3     my-bucket                      -> product=None,     id=my-bucket
"""

from __future__ import annotations

from collections.abc import Callable, Mapping

from tag_inventory.arn import account_from_arn, service_from_arn, short_arn
from tag_inventory.errors import MalformedResourceIdentifier
from tag_inventory.models import TaggedResource

# A rule receives (short_arn, service) and returns (product, id).
DecompositionRule = Callable[[str, str], tuple[str | None, str]]


def generic_rule(short: str, service: str) -> tuple[str | None, str]:
    """Keep the whole shortened ARN as the id."""
    return None, short


def slash_rule(short: str, service: str) -> tuple[str | None, str]:
    """Split ``label/value`` on the first slash."""
    product, sep, ident = short.partition("/")
    if not sep:
        raise MalformedResourceIdentifier(short, service, "expected 'label/value', found no '/'")
    if not product or not ident:
        raise MalformedResourceIdentifier(short, service, "empty label or value around '/'")
    return product, ident


# ──────────────────────────── Rule registry ───────────────────────────────────

_RULES: dict[str, DecompositionRule] = {}


def register_rule(service: str, rule: DecompositionRule) -> DecompositionRule:
    """Register (or replace) the decomposition rule for *service*."""
    _RULES[service] = rule
    return rule


def rule_for(service: str) -> DecompositionRule:
    """Return the rule used for *service*, falling back to :func:`generic_rule`."""
    return _RULES.get(service, generic_rule)


def all_rules() -> dict[str, DecompositionRule]:
    """Return a copy of the registered rules (the generic fallback is not listed)."""
    return dict(_RULES)


# Services whose resource part is ``label/value`` or ``label:value``.
# The shortener rewrites ':' to '/', so both shapes go through slash_rule.
for _service in (
    "ec2",                   # instance/i-0123, security-group/sg-..., vpc/vpc-...
    "ecs",                   # cluster/name, service/cluster/name, task/...
    "eks",                   # cluster/name
    "ecr",                   # repository/name
    "lambda",                # function:name[:alias]
    "rds",                   # db:name, cluster:name, snapshot:name
    "elasticache",           # cluster:name, replicationgroup:name
    "elasticloadbalancing",  # loadbalancer/app/name/id, targetgroup/name/id
):
    register_rule(_service, slash_rule)


# ──────────────────────────── Normalization ───────────────────────────────────


def normalize(
    short: str,
    service: str,
    region: str,
    arn: str = "",
    tags: Mapping[str, str] | None = None,
) -> TaggedResource:
    """Build a record from an already-shortened ARN.

    Raises:
        MalformedResourceIdentifier: *short* does not fit the service's rule.
    """
    product, ident = rule_for(service)(short, service)
    return TaggedResource(
        region=region,
        service=service,
        product=product,
        id=ident,
        full_identifier=arn or short,
        account=account_from_arn(arn) if arn else "",
        tags=dict(tags or {}),
    )


def resource_from_arn(
    arn: str,
    region: str,
    tags: Mapping[str, str] | None = None,
) -> TaggedResource:
    """Classify, shorten and normalize a fully-qualified ARN.

    Raises:
        InvalidIdentifierFormat: *arn* is not a well-formed ARN.
        MalformedResourceIdentifier: the resource part does not fit its service's rule.
    """
    service = service_from_arn(arn)
    return normalize(short_arn(arn), service, region, arn=arn, tags=tags)


def tags_to_dict(tags: list[dict[str, str]] | None) -> dict[str, str]:
    """Convert the API's ``[{"Key": k, "Value": v}]`` list into a dict."""
    return {t["Key"]: t.get("Value", "") for t in (tags or []) if "Key" in t}
