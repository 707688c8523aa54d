"""Command-line interface for the public calendar cache."""

from __future__ import annotations

import logging
from datetime import date, datetime
from pathlib import Path

import click

from publiccalendar.calendar import PublicCalendar
from publiccalendar.collectors.base import DEFAULT_TIMEOUT
from publiccalendar.models import Category
from publiccalendar.renderer import render_day, render_stats, write_day

# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s — %(message)s"


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(format=LOG_FORMAT, level=level)


# ---------------------------------------------------------------------------
# Option types
# ---------------------------------------------------------------------------

CATEGORY_CHOICE = click.Choice([c.value for c in Category])


def _parse_day(value: datetime | None) -> date:
    return value.date() if value else date.today()


def _run_refresh(cal: PublicCalendar, force: bool) -> bool | None:
    """Start a refresh and wait for it. Returns None if none was needed."""
    future = cal.fetch(force=force)
    if future is None:
        return None
    return future.result()


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging.")
@click.option(
    "--cache-dir",
    type=click.Path(path_type=Path),
    default=None,
    envvar="PUBLICCALENDAR_CACHE_DIR",
    help="Directory for the cache files (default: ~/.cache/publiccalendar).",
)
@click.option(
    "--timeout",
    type=float,
    default=DEFAULT_TIMEOUT,
    show_default=True,
    help="Per-category collection timeout in seconds.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, cache_dir: Path | None, timeout: float) -> None:
    """Public calendar — cached Swedish holidays, flag days and theme days."""
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    cal = PublicCalendar(cache_dir, category_timeout=timeout)
    ctx.call_on_close(cal.close)
    ctx.obj["calendar"] = cal


@cli.command()
@click.option("--force", is_flag=True, help="Refresh even if the cache is fresh.")
@click.pass_context
def refresh(ctx: click.Context, force: bool) -> None:
    """Refresh the cache from kalender.se."""
    cal: PublicCalendar = ctx.obj["calendar"]
    result = _run_refresh(cal, force or cal.is_stale())
    if result is None:
        click.echo("Cache is up to date; use --force to refresh anyway.")
    elif result:
        counts = ", ".join(f"{c.value}={len(e)}" for c, e in cal.current().items())
        click.echo(f"Refreshed: {counts}")
    else:
        click.echo("ERROR: refresh failed, cache left unchanged.", err=True)
        ctx.exit(1)


@cli.command()
@click.option("--date", "day", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="Day to show (default: today).")
@click.option("-c", "--category", "categories", type=CATEGORY_CHOICE, multiple=True,
              help="Restrict to a category (repeatable).")
@click.option("-o", "--output", type=click.Path(path_type=Path), default=None,
              help="Write Markdown to this file instead of stdout.")
@click.pass_context
def show(ctx: click.Context, day: datetime | None, categories: tuple[str, ...], output: Path | None) -> None:
    """Show the events on a day."""
    cal: PublicCalendar = ctx.obj["calendar"]
    if not cal.current() or cal.is_stale():
        _run_refresh(cal, force=True)

    target = _parse_day(day)
    wanted = [Category(c) for c in categories] or list(Category)
    events = cal.events(target, wanted)

    if output:
        path = write_day(events, target, output)
        click.echo(f"Wrote {path} ({len(events)} event(s))")
    else:
        click.echo(render_day(events, target))


@cli.command("is-holiday")
@click.option("--date", "day", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="Day to check (default: today).")
@click.pass_context
def is_holiday(ctx: click.Context, day: datetime | None) -> None:
    """Exit 0 if the day is a public holiday, 1 otherwise."""
    cal: PublicCalendar = ctx.obj["calendar"]
    if not cal.current() or cal.is_stale():
        _run_refresh(cal, force=True)

    target = _parse_day(day)
    if cal.is_holiday(target):
        titles = ", ".join(e.title for e in cal.events(target, [Category.HOLIDAYS]))
        click.echo(f"yes: {titles}")
    else:
        click.echo("no")
        ctx.exit(1)


@cli.command()
@click.pass_context
def purge(ctx: click.Context) -> None:
    """Delete the cache and the last refresh time."""
    cal: PublicCalendar = ctx.obj["calendar"]
    cal.purge()
    click.echo(f"Purged {cal.store.cache_dir}")


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show cache statistics."""
    cal: PublicCalendar = ctx.obj["calendar"]
    click.echo(render_stats(cal.store.stats()))


@cli.command("list-sources")
def list_sources() -> None:
    """Show the source page for every category."""
    click.echo(f"{'Category':<20} {'URL'}")
    click.echo(f"{'-' * 20} {'-' * 50}")
    for category in Category:
        click.echo(f"{category.value:<20} {category.url}")
