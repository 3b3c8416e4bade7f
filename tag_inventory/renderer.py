"""Render collected resources as a rich table, JSON or Markdown."""

from __future__ import annotations

import json
import logging
from importlib.resources import files as importlib_files
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, select_autoescape
from rich.table import Table

from tag_inventory.models import Inventory, TaggedResource

logger = logging.getLogger(__name__)

_TEMPLATES_REF = importlib_files("tag_inventory") / "templates"


def _get_jinja_env() -> Environment:
    return Environment(
        loader=FileSystemLoader(str(_TEMPLATES_REF)),
        autoescape=select_autoescape(default=False),
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
    )


def table_rows(resources: list[TaggedResource]) -> list[list[str]]:
    """One row per resource; a missing product renders as an empty cell."""
    return [[r.region, r.service, r.product or "", r.id] for r in resources]


def render_table(resources: list[TaggedResource], title: str | None = None) -> Table:
    """Build a bordered rich table with Region / Service / Product / ID columns."""
    table = Table(title=title, show_lines=False)
    table.add_column("Region", style="cyan", no_wrap=True)
    table.add_column("Service", style="bold")
    table.add_column("Product")
    table.add_column("ID", overflow="fold")
    for row in table_rows(resources):
        table.add_row(*row)
    return table


def render_json(resources: list[TaggedResource]) -> str:
    """Serialize records as a JSON list, with ``fullIdentifier`` for the ARN."""
    payload = [r.model_dump(mode="json", by_alias=True) for r in resources]
    return json.dumps(payload, indent=2)


def render_markdown(inventory: Inventory) -> str:
    """Render a Markdown report of the inventory."""
    env = _get_jinja_env()
    template = env.get_template("inventory.md.j2")
    return template.render(inventory=inventory, by_service=inventory.by_service())


def render_text(inventory: Inventory, output_format: str) -> str:
    """Render *inventory* to text for the ``json`` and ``markdown`` formats."""
    if output_format == "json":
        return render_json(inventory.resources)
    if output_format == "markdown":
        return render_markdown(inventory)
    raise ValueError(f"Unsupported text format: {output_format!r}")


def write_output(inventory: Inventory, output_format: str, path: Path) -> Path:
    """Write the rendered inventory to *path* and return it."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_text(inventory, output_format), encoding="utf-8")
    logger.info("Wrote %s", path)
    return path
