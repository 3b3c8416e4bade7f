"""Application configuration and settings."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator


DEFAULT_REGIONS = ["eu-west-1"]
DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100  # hard limit of tag:GetResources


def _env_list(name: str) -> list[str]:
    raw = os.environ.get(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseModel):
    """Runtime settings resolved from env vars, a config file and CLI flags."""

    # AWS
    regions: list[str] = Field(
        default_factory=lambda: _env_list("TAG_INVENTORY_REGIONS") or list(DEFAULT_REGIONS),
        description="Regions to scan, in output order.",
    )
    profile: str = Field(
        default_factory=lambda: os.environ.get("AWS_PROFILE", ""),
        description="AWS CLI profile name. Uses default credentials if empty.",
    )

    # Tagging API query
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    tag_filters: list[str] = Field(
        default_factory=list,
        description="Tag filters as 'KEY' or 'KEY=VALUE'. Values for the same key are OR-ed.",
    )
    resource_types: list[str] = Field(
        default_factory=list,
        description="Resource type filters, e.g. 'ec2:instance' or 's3'.",
    )

    # ── Retry / timeouts ─────────────────────────────────────────────
    max_retries: int = Field(default=3, ge=0)
    retry_base_delay: float = Field(default=1.0, ge=0)
    retry_max_delay: float = Field(default=20.0, ge=0)
    call_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Connect and read timeout in seconds for each API call.",
    )

    # Behaviour
    max_workers: int = Field(default=1, ge=1, description="Regions collected in parallel.")
    strict: bool = Field(
        default=False,
        description="Abort on ARNs that cannot be normalized instead of skipping them.",
    )
    verbose: bool = False

    # Output
    output_format: Literal["table", "json", "markdown"] = "table"
    output_path: str = ""

    @field_validator("regions")
    @classmethod
    def _dedupe_regions(cls, value: list[str]) -> list[str]:
        regions = list(dict.fromkeys(r.strip() for r in value if r.strip()))
        if not regions:
            raise ValueError("at least one region is required")
        return regions

    @field_validator("tag_filters")
    @classmethod
    def _check_tag_filters(cls, value: list[str]) -> list[str]:
        for item in value:
            if not item.split("=", 1)[0].strip():
                raise ValueError(f"tag filter {item!r} has an empty key")
        return value

    # ── Loading ─────────────────────────────────────────────────────

    @classmethod
    def from_file(cls, path: str | Path, **overrides: Any) -> Settings:
        """Load settings from a YAML file; *overrides* win over file values.

        Overrides whose value is ``None`` are ignored so that unset CLI
        options don't clobber the file.
        """
        config_path = Path(path)
        if not config_path.is_file():
            raise FileNotFoundError(f"Config file not found: {config_path}")
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Config file {config_path} must contain a mapping")
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**data)

    @classmethod
    def load(cls, path: str | Path | None = None, **overrides: Any) -> Settings:
        """Build settings from an optional config file plus CLI overrides."""
        if path:
            return cls.from_file(path, **overrides)
        return cls(**{k: v for k, v in overrides.items() if v is not None})

    # ── API parameters ───────────────────────────────────────────────

    def tag_filter_params(self) -> list[dict[str, Any]]:
        """Convert ``tag_filters`` into the ``TagFilters`` shape of GetResources."""
        grouped: dict[str, list[str]] = {}
        for item in self.tag_filters:
            key, sep, value = item.partition("=")
            values = grouped.setdefault(key.strip(), [])
            if sep:
                values.append(value.strip())
        params: list[dict[str, Any]] = []
        for key, values in grouped.items():
            entry: dict[str, Any] = {"Key": key}
            if values:
                entry["Values"] = values
            params.append(entry)
        return params
