"""CLI entrypoint — sweep scan, show, analyze, cleanup, trash, cache, serve."""

from __future__ import annotations

import logging
from collections import Counter
from pathlib import Path

import click

from sessionsweep.cache import ScanCache
from sessionsweep.config import SweepConfig, load_config
from sessionsweep.cost import session_cost
from sessionsweep.errors import AmbiguousIdError, NotFoundError
from sessionsweep.models import MODE_FULL, SessionSummary, Tier
from sessionsweep.scan import analyze_session, find_session, load_sessions
from sessionsweep.trash import TrashJournal

logger = logging.getLogger(__name__)

_LOOKUP_ERRORS = (NotFoundError, AmbiguousIdError, OSError)


def open_cache(config: SweepConfig) -> ScanCache:
    return ScanCache(config.cache_path, prune_every=config.prune_every)


def open_journal(config: SweepConfig) -> TrashJournal:
    return TrashJournal(config.trash_dir, config.journal_path, config.projects_dir)


@click.group()
@click.option("--config", "config_path", type=click.Path(path_type=Path), default=None,
              help="Path to config.yaml (default: ~/.config/sessionsweep/config.yaml).")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool):
    """sweep — inventory, classify and tidy chat session logs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = load_config(config_path)


@cli.command("scan")
@click.option("--project", default=None, help="Only scan one project directory.")
@click.option("--full", is_flag=True, help="Read whole files instead of head and tail.")
@click.option("--analyze", is_flag=True, help="Run deep analysis (implies --full).")
@click.option("--tier", type=click.IntRange(1, 4), default=None, help="Only show one tier.")
@click.pass_obj
def scan_cmd(config: SweepConfig, project: str | None, full: bool, analyze: bool, tier: int | None):
    """List sessions with their tier."""
    with open_cache(config) as cache:
        sessions = load_sessions(
            config, cache, mode=MODE_FULL if full else None, project=project, analyze=analyze,
        )

    if not sessions:
        click.echo(f"No sessions found in {config.projects_dir}")
        return

    shown = [s for s in sessions if tier is None or s.tier == tier]
    for s in shown:
        click.echo(
            f"{s.session_id[:8]}  {s.tier_label:<16}  {_date(s):<10}  "
            f"{s.short_project[:16]:<16}  {format_bytes(s.size_bytes):>8}  {s.title}"
        )

    counts = Counter(s.tier for s in sessions)
    click.echo(
        f"\n{len(sessions)} sessions: "
        + ", ".join(f"{counts.get(int(t), 0)} {t.label}" for t in Tier)
    )


@cli.command()
@click.argument("session_id")
@click.pass_obj
def show(config: SweepConfig, session_id: str):
    """Show one session's summary and classification."""
    with open_cache(config) as cache:
        sessions = load_sessions(config, cache)
    try:
        s = find_session(sessions, session_id)
    except _LOOKUP_ERRORS as e:
        raise click.ClickException(str(e)) from e

    click.echo(f"Session:   {s.session_id}")
    click.echo(f"Title:     {s.title}")
    click.echo(f"Project:   {s.project}")
    click.echo(f"Category:  {s.category}")
    click.echo(f"Tier:      {s.tier} ({s.tier_label})")
    if s.reasons:
        click.echo(f"Reasons:   {', '.join(s.reasons)}")
    click.echo(f"Messages:  {s.user_message_count} user, {s.assistant_message_count} assistant")
    click.echo(f"Duration:  {format_duration(s.duration_seconds)}")
    click.echo(f"Size:      {format_bytes(s.size_bytes)}")
    if s.models:
        click.echo(f"Models:    {', '.join(s.models)}")
    click.echo(f"Est. cost: ${session_cost(s):.2f}")
    click.echo(f"File:      {s.file_path}")


@cli.command()
@click.argument("session_id")
@click.pass_obj
def analyze(config: SweepConfig, session_id: str):
    """Deep analysis of a session (tool usage, thinking, files)."""
    with open_cache(config) as cache:
        sessions = load_sessions(config, cache)
        try:
            s = analyze_session(config, find_session(sessions, session_id), cache)
        except _LOOKUP_ERRORS as e:
            raise click.ClickException(str(e)) from e

    info = s.enrichment
    click.echo(f"Deep analysis: {s.title}\n")
    click.echo(f"Tier:          {s.tier} ({s.tier_label})")
    click.echo(f"Turns:         {info.turn_count}")
    click.echo(f"Tool calls:    {info.total_tool_calls} ({info.failed_tool_calls} failed)")
    click.echo(f"Thinking:      {info.thinking_blocks} blocks, {info.thinking_characters:,} chars")
    click.echo(f"Avg response:  {info.avg_response_length:,} chars")
    click.echo(f"Files touched: {info.unique_files_count}")
    click.echo(f"Sub-agents:    {'yes' if info.has_sub_agents else 'no'}")
    click.echo(f"Language:      {info.language}")
    click.echo(f"Auto-tags:     {' '.join('#' + t for t in info.auto_tags) or 'none'}")
    if info.tool_usage:
        click.echo("\nTool breakdown:")
        for tool, count in sorted(info.tool_usage.items(), key=lambda kv: -kv[1]):
            click.echo(f"  {tool:<16} {count}")


@cli.command()
@click.option("--tier1-only", is_flag=True, help="Only trash tier 1 (auto-delete) sessions.")
@click.option("--dry-run", is_flag=True, help="Show what would be trashed without doing it.")
@click.option("--yes", "-y", is_flag=True, help="Don't ask for confirmation.")
@click.pass_obj
def cleanup(config: SweepConfig, tier1_only: bool, dry_run: bool, yes: bool):
    """Move junk sessions (tiers 1 and 2) to the trash."""
    with open_cache(config) as cache:
        sessions = load_sessions(config, cache)

    groups = [(Tier.AUTO_DELETE, [s for s in sessions if s.tier == Tier.AUTO_DELETE])]
    if not tier1_only:
        groups.append((Tier.SUGGESTED, [s for s in sessions if s.tier == Tier.SUGGESTED]))

    if not any(members for _, members in groups):
        click.echo("No junk sessions found.")
        return

    for tier, members in groups:
        if not members:
            continue
        size = sum(s.size_bytes for s in members)
        click.echo(f"\nTier {int(tier)} — {tier.label} ({len(members)} sessions, {format_bytes(size)})")
        for s in members[:20]:
            click.echo(f"  {s.session_id[:8]}  {_date(s):<10}  {s.short_project[:14]:<14}  {', '.join(s.reasons)}")
        if len(members) > 20:
            click.echo(f"  ... and {len(members) - 20} more")

    if dry_run:
        total = sum(len(m) for _, m in groups)
        click.echo(f"\nDry run: would trash {total} sessions")
        return

    journal = open_journal(config)
    for tier, members in groups:
        if not members:
            continue
        if not yes and not click.confirm(f"Trash {len(members)} tier {int(tier)} sessions?"):
            continue
        trashed, skipped = _trash_all(journal, members, f"cleanup-tier{int(tier)}")
        msg = f"Trashed {trashed} tier {int(tier)} sessions"
        if skipped:
            msg += f" ({skipped} skipped due to errors)"
        click.echo(msg)

    click.echo('Use "sweep trash list" to review, "sweep trash restore <id>" to undo.')


def _trash_all(journal: TrashJournal, sessions: list[SessionSummary], reason: str) -> tuple[int, int]:
    trashed = skipped = 0
    for s in sessions:
        try:
            journal.trash(s, reason)
            trashed += 1
        except OSError as e:
            logger.warning("Could not trash %s: %s", s.session_id, e)
            skipped += 1
    return trashed, skipped


# ---------------------------------------------------------------------------
# trash
# ---------------------------------------------------------------------------


@cli.group()
def trash():
    """Manage trashed sessions."""


@trash.command("list")
@click.pass_obj
def trash_list(config: SweepConfig):
    """List trashed sessions."""
    items = open_journal(config).list()
    if not items:
        click.echo("Trash is empty")
        return
    for item in items:
        click.echo(
            f"{item.id[:8]}  {item.trashed_at.date().isoformat()}  {item.project[:14]:<14}  "
            f"{item.junk_score:.1f}  {format_bytes(item.size_bytes):>8}  {item.title}"
        )
    click.echo(f"\n{len(items)} items in trash")


@trash.command("restore")
@click.argument("session_id")
@click.pass_obj
def trash_restore(config: SweepConfig, session_id: str):
    """Restore a session from the trash."""
    try:
        restored = open_journal(config).restore(session_id)
    except _LOOKUP_ERRORS as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Restored {session_id} -> {restored}")


@trash.command("purge")
@click.argument("session_id")
@click.option("--yes", "-y", is_flag=True, help="Don't ask for confirmation.")
@click.pass_obj
def trash_purge(config: SweepConfig, session_id: str, yes: bool):
    """Permanently delete a session from the trash."""
    journal = open_journal(config)
    try:
        item = journal.find(session_id)
        if not yes and not click.confirm(
            f'Permanently delete "{item.title or item.id}"? This cannot be undone.'
        ):
            click.echo("Cancelled")
            return
        journal.purge(item.id)
    except _LOOKUP_ERRORS as e:
        raise click.ClickException(str(e)) from e
    click.echo(f"Permanently deleted {item.id[:8]}")


@trash.command("empty")
@click.option("--older-than", "older_than", type=int, default=None,
              help="Days threshold (0 = everything; default from config).")
@click.pass_obj
def trash_empty(config: SweepConfig, older_than: int | None):
    """Permanently delete old trashed sessions."""
    days = config.trash_retention_days if older_than is None else older_than
    result = open_journal(config).empty_older_than(days)
    click.echo(f"Removed {result.removed} items, {result.remaining} remaining")


# ---------------------------------------------------------------------------
# cache
# ---------------------------------------------------------------------------


@cli.group()
def cache():
    """Manage the scan cache."""


@cache.command("stats")
@click.pass_obj
def cache_stats(config: SweepConfig):
    """Show cache statistics."""
    with open_cache(config) as c:
        stats = c.stats()
    click.echo(f"Entries: {stats.entries} ({stats.analyzed} analyzed)")
    click.echo(f"Disk:    {format_bytes(stats.disk_size)}")


@cache.command("clear")
@click.pass_obj
def cache_clear(config: SweepConfig):
    """Clear the scan cache."""
    with open_cache(config) as c:
        c.clear()
    click.echo("Cache cleared")


@cache.command("prune")
@click.pass_obj
def cache_prune(config: SweepConfig):
    """Drop cache entries for deleted session files."""
    with open_cache(config) as c:
        removed = c.prune()
    click.echo(f"Pruned {removed} entries")


@cli.command()
@click.option("--port", default=None, type=int, help="Port to serve on (default: 3456).")
@click.pass_obj
def serve(config: SweepConfig, port: int | None):
    """Start the JSON API server."""
    serve_port = port or config.port

    click.echo(f"Serving API at http://localhost:{serve_port}/api/sessions")
    click.echo("Press Ctrl+C to stop.")

    from sessionsweep.web.app import create_app

    app = create_app(config)
    app.run(host="localhost", port=serve_port)


# ---------------------------------------------------------------------------
# formatting
# ---------------------------------------------------------------------------


def format_bytes(num: int) -> str:
    """Human-readable size, e.g. 1536 -> '1.5 KB'."""
    if num < 1024:
        return f"{num} B"
    value = float(num)
    for unit in ("KB", "MB", "GB"):
        value /= 1024
        if value < 1024 or unit == "GB":
            return f"{value:.1f} {unit}"
    return f"{num} B"


def format_duration(seconds: float) -> str:
    if not seconds or seconds < 0:
        return "0s"
    if seconds < 60:
        return f"{round(seconds)}s"
    if seconds < 3600:
        return f"{round(seconds / 60)}m"
    hours = int(seconds // 3600)
    minutes = round((seconds % 3600) / 60)
    return f"{hours}h {minutes}m" if minutes else f"{hours}h"


def _date(s: SessionSummary) -> str:
    return s.last_timestamp.date().isoformat() if s.last_timestamp else "N/A"
