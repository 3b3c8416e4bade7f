"""Pydantic models for normalized resources and collection results."""

from __future__ import annotations

from collections import Counter

from pydantic import BaseModel, ConfigDict, Field


# ──────────────────────────── Resources ───────────────────────────────────────


class TaggedResource(BaseModel):
    """A single resource reported by the tagging API, normalized from its ARN."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    region: str = Field(min_length=1)
    service: str = Field(min_length=1)
    product: str | None = Field(
        default=None,
        description="Sub-type label, e.g. 'instance' or 'cluster'. None for generic services.",
    )
    id: str = Field(min_length=1)
    full_identifier: str = Field(
        serialization_alias="fullIdentifier",
        validation_alias="fullIdentifier",
        description="The fully-qualified ARN reported by the API",
    )
    account: str = ""
    tags: dict[str, str] = Field(default_factory=dict)

    @property
    def short_identifier(self) -> str:
        """The shortened ARN this record was decomposed from."""
        if self.product is None:
            return self.id
        return f"{self.product}/{self.id}"


class SkippedIdentifier(BaseModel):
    """An ARN dropped because it could not be normalized."""

    model_config = ConfigDict(frozen=True)

    region: str
    arn: str
    reason: str


# ──────────────────────────── Collection results ──────────────────────────────


class RegionInventory(BaseModel):
    """Everything collected from one region, in API page order."""

    region: str
    resources: list[TaggedResource] = Field(default_factory=list)
    pages: int = 0
    skipped: list[SkippedIdentifier] = Field(default_factory=list)


class Inventory(BaseModel):
    """Combined result of a multi-region collection, in region order."""

    regions: list[RegionInventory] = Field(default_factory=list)

    @property
    def resources(self) -> list[TaggedResource]:
        return [r for region in self.regions for r in region.resources]

    @property
    def skipped(self) -> list[SkippedIdentifier]:
        return [s for region in self.regions for s in region.skipped]

    @property
    def region_names(self) -> list[str]:
        return [r.region for r in self.regions]

    def by_service(self) -> dict[str, int]:
        """Count resources per service, most common first."""
        return dict(Counter(r.service for r in self.resources).most_common())
