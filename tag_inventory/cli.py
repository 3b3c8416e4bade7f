"""CLI entry-point for tag-inventory."""

from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path
from typing import NoReturn

import click
from pydantic import ValidationError
from rich.console import Console

from tag_inventory import __version__
from tag_inventory.arn import region_from_arn
from tag_inventory.aws import collect_from_settings
from tag_inventory.config import MAX_PAGE_SIZE, Settings
from tag_inventory.errors import InventoryError
from tag_inventory.models import Inventory, RegionInventory, SkippedIdentifier
from tag_inventory.normalizer import all_rules, resource_from_arn
from tag_inventory.renderer import render_table, render_text, write_output

console = Console()
err_console = Console(stderr=True)

_FORMATS = click.Choice(["table", "json", "markdown"])


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%H:%M:%S",
    )
    # Quieten noisy libraries
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("boto3").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def _fail(message: str) -> NoReturn:
    err_console.print(f"[red bold]Error:[/red bold] {message}")
    sys.exit(1)


def _emit(inventory: Inventory, output_format: str, output_path: str) -> None:
    """Print or write the inventory in the requested format."""
    if output_format == "table":
        console.print(render_table(inventory.resources))
    elif output_path:
        written = write_output(inventory, output_format, Path(output_path).resolve())
        err_console.print(f"  Written to [green]{written}[/green]")
    else:
        click.echo(render_text(inventory, output_format), nl=False)

    if inventory.skipped:
        err_console.print(
            f"[yellow]Skipped {len(inventory.skipped)} ARN(s) that could not be "
            "normalized (use --verbose for details, --strict to abort instead).[/yellow]"
        )


@click.group()
@click.version_option(version=__version__, prog_name="tag-inventory")
def main() -> None:
    """List tagged AWS resources across regions."""


@main.command("list")
@click.option(
    "--region", "-r", "regions", multiple=True, help="Region to scan (repeatable). Default: eu-west-1."
)
@click.option("--profile", default=None, help="AWS CLI profile name (or set AWS_PROFILE).")
@click.option(
    "--config", "config_file", default=None, type=click.Path(dir_okay=False),
    help="YAML file with settings; CLI flags take precedence.",
)
@click.option(
    "--page-size", type=click.IntRange(1, MAX_PAGE_SIZE), default=None,
    help="Resources per GetResources page (default 50).",
)
@click.option(
    "--tag", "tags", multiple=True, help="Only resources with this tag: KEY or KEY=VALUE (repeatable)."
)
@click.option(
    "--type", "resource_types", multiple=True,
    help="Resource type filter, e.g. ec2:instance or s3 (repeatable).",
)
@click.option("--workers", type=click.IntRange(min=1), default=None, help="Regions scanned in parallel.")
@click.option("--retries", type=click.IntRange(min=0), default=None, help="Retries per page on throttling.")
@click.option("--timeout", type=float, default=None, help="Per-call connect/read timeout in seconds.")
@click.option("--strict", is_flag=True, help="Abort on ARNs that cannot be normalized.")
@click.option("--format", "output_format", type=_FORMATS, default=None, help="Output format.")
@click.option("--output", "-o", "output_path", default=None, help="Write json/markdown output to a file.")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def list_resources(
    regions: tuple[str, ...],
    profile: str | None,
    config_file: str | None,
    page_size: int | None,
    tags: tuple[str, ...],
    resource_types: tuple[str, ...],
    workers: int | None,
    retries: int | None,
    timeout: float | None,
    strict: bool,
    output_format: str | None,
    output_path: str | None,
    verbose: bool,
) -> None:
    """Collect tagged resources and print them.

    Examples:

      tag-inventory list

      tag-inventory list -r eu-west-1 -r us-east-1 --workers 2

      tag-inventory list --tag Environment=prod --type ec2:instance --format json
    """
    _configure_logging(verbose)

    try:
        settings = Settings.load(
            config_file,
            regions=list(regions) or None,
            profile=profile,
            page_size=page_size,
            tag_filters=list(tags) or None,
            resource_types=list(resource_types) or None,
            max_workers=workers,
            max_retries=retries,
            call_timeout=timeout,
            strict=strict or None,
            output_format=output_format,
            output_path=output_path,
            verbose=verbose or None,
        )
    except (FileNotFoundError, ValueError, ValidationError) as exc:
        _fail(str(exc))

    if settings.output_format == "table" and settings.output_path:
        raise click.UsageError("--output requires --format json or markdown.")

    err_console.print(
        f"  Scanning [cyan]{', '.join(settings.regions)}[/cyan] "
        f"({settings.page_size} resources per page)"
    )

    cancel = threading.Event()
    try:
        inventory = collect_from_settings(settings, cancel=cancel)
    except KeyboardInterrupt:
        cancel.set()
        err_console.print("[yellow]Interrupted.[/yellow]")
        sys.exit(130)
    except InventoryError as exc:
        _fail(str(exc))

    if not inventory.resources and not inventory.skipped:
        err_console.print("[yellow]No tagged resources found.[/yellow]")

    _emit(inventory, settings.output_format, settings.output_path)


@main.command()
@click.argument("arns", nargs=-1)
@click.option("--region", "-r", default="", help="Region label for the records (default: from the ARN).")
@click.option("--strict", is_flag=True, help="Abort on the first ARN that cannot be normalized.")
@click.option("--format", "output_format", type=_FORMATS, default="table", help="Output format.")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging.")
def parse(
    arns: tuple[str, ...],
    region: str,
    strict: bool,
    output_format: str,
    verbose: bool,
) -> None:
    """Normalize ARNs offline, without calling AWS.

    ARNS are read from the arguments, or one per line from stdin when none
    are given.
    """
    _configure_logging(verbose)

    if not arns:
        arns = tuple(line.strip() for line in click.get_text_stream("stdin") if line.strip())
    if not arns:
        raise click.UsageError("No ARNs given.")

    log = logging.getLogger(__name__)
    by_region: dict[str, RegionInventory] = {}
    for arn in arns:
        try:
            label = region or region_from_arn(arn) or "global"
            resource = resource_from_arn(arn, label)
        except InventoryError as exc:
            if strict:
                _fail(str(exc))
            log.warning("Skipping %s", exc)
            label = region or "unknown"
            bucket = by_region.setdefault(label, RegionInventory(region=label))
            bucket.skipped.append(SkippedIdentifier(region=label, arn=arn, reason=str(exc)))
            continue
        by_region.setdefault(label, RegionInventory(region=label)).resources.append(resource)

    _emit(Inventory(regions=list(by_region.values())), output_format, "")


@main.command()
def rules() -> None:
    """Show the registered decomposition rules."""
    for service, rule in sorted(all_rules().items()):
        console.print(f"  [bold]{service:<22}[/bold] {rule.__name__}")
    console.print("  [dim]*                      generic_rule[/dim]")


if __name__ == "__main__":
    main()
