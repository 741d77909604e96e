"""Reprise CLI: one-shot dispatch, diagnostics, item management and the server."""

import asyncio
import dataclasses
import json
import logging
import sys
from pathlib import Path
from typing import Annotated, Any

import typer

from reprise.application.config import AppConfig, resolve_config
from reprise.application.factory import Services, build_services
from reprise.domain.calendar import parse_email_time
from reprise.domain.errors import InvalidEmailTimeError, RepriseError
from reprise.domain.models import Recipient, UserSchedulingProfile

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="reprise: spaced-repetition revisit scheduler and daily reminders.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Subgroups
# ---------------------------------------------------------------------------

config_app = typer.Typer(help="Manage reprise configuration.")
app.add_typer(config_app, name="config")

user_app = typer.Typer(help="Manage users.", no_args_is_help=True)
app.add_typer(user_app, name="user")

item_app = typer.Typer(help="Manage tracked items.", no_args_is_help=True)
app.add_typer(item_app, name="item")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _config(ctx: typer.Context) -> AppConfig:
    overrides = (ctx.obj or {}).get("overrides", {})
    return resolve_config(overrides)


def _services(ctx: typer.Context) -> Services:
    return build_services(_config(ctx))


def _run(services: Services, coro: Any) -> Any:
    """
    Run a coroutine on a fresh event loop and close the sender before the
    loop ends. Domain errors become a red message and exit code 1.
    """

    async def _main() -> Any:
        try:
            return await coro
        finally:
            await services.sender.close()

    try:
        return asyncio.run(_main())
    except RepriseError as e:
        typer.secho(str(e), fg="red", err=True)
        raise typer.Exit(1) from None


def _to_json(obj: Any) -> str:
    data = dataclasses.asdict(obj) if dataclasses.is_dataclass(obj) else obj
    return json.dumps(data, indent=2, default=str)


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 1,
    data_file: Annotated[
        Path | None, typer.Option(help="YAML data file. Defaults to config.")
    ] = None,
    timezone: Annotated[
        str | None, typer.Option(help="IANA time zone for calendar dates, e.g. Europe/Paris.")
    ] = None,
):
    """Global settings for reprise."""
    ctx.ensure_object(dict)
    ctx.obj["overrides"] = {"data_file": data_file, "timezone": timezone}
    if verbose > 1:
        logging.getLogger().setLevel(logging.DEBUG)


# ---------------------------------------------------------------------------
# Root commands
# ---------------------------------------------------------------------------


@app.command()
def dispatch(
    ctx: typer.Context,
    force: Annotated[
        bool,
        typer.Option(
            "--force", "-f", help="Send even to users already reminded today (time gate still applies)."
        ),
    ] = False,
):
    """[bold green]Run[/bold green] one dispatch sweep over all users and exit."""
    services = _services(ctx)
    logger.info(f"Running one-shot dispatch sweep (force={force})")

    report = _run(services, services.orchestrator.run_sweep(force=force))
    if report is None:
        typer.secho("A dispatch sweep is already running.", fg="yellow")
        raise typer.Exit(1)

    if report.aborted:
        typer.secho(f"Sweep aborted: {report.error}", fg="red")
        raise typer.Exit(1)

    typer.echo(
        f"Users: {len(report.outcomes)}  Sent: {report.sent_count}"
        f"  Failed: {report.failed_count}  Skipped: {report.skipped_count}"
    )
    for outcome in report.outcomes:
        color = {"sent": "green", "send_failed": "red", "error": "red"}.get(outcome.status)
        line = f"  {outcome.user_id}: {outcome.status}"
        if outcome.message:
            line += f" ({outcome.message})"
        typer.secho(line, fg=color)


@app.command()
def preview(
    ctx: typer.Context,
    user_id: Annotated[str, typer.Argument(help="User to inspect.")],
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Dry run: show weights, eligibility and what a sweep would send. Sends nothing."""
    services = _services(ctx)
    report = _run(services, services.orchestrator.dry_run(user_id))

    if json_output:
        typer.echo(_to_json(report))
        return

    typer.echo(f"User: {report.user_id} <{report.email}>")
    typer.echo(
        f"Per day: {report.problems_per_day}  Min revisit days: {report.min_revisit_days}"
    )
    color = "green" if report.verdict == "would_send" else "yellow"
    typer.secho(f"Verdict: {report.verdict}", fg=color)
    typer.echo(
        f"Items: {len(report.items)}  Eligible: {len(report.eligible_ids)}"
        f"  Selected: {len(report.selected_ids)}"
    )
    for entry in report.items:
        w = entry.weight
        mark = "*" if entry.selected else " "
        eligible = "eligible" if w.is_eligible else "waiting"
        typer.echo(
            f" {mark} {w.weight:>8.2f}  {w.priority:<6}  {eligible:<8}  {entry.item.title or entry.item.id}"
        )


@app.command()
def focus(
    ctx: typer.Context,
    user_id: Annotated[str, typer.Argument(help="User to show.")],
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Today's focus: a selection that stays the same all day."""
    services = _services(ctx)
    report = _run(services, services.focus.get_todays_focus(user_id))

    if json_output:
        data = dataclasses.asdict(report)
        data["summary"] = {
            "total": report.total,
            "completed": report.completed,
            "remaining": report.remaining,
        }
        typer.echo(_to_json(data))
        return

    if not report.entries:
        typer.secho("Nothing to revisit today.", fg="yellow")
        return

    for i, entry in enumerate(report.entries, start=1):
        done = "[x]" if entry.revisited_today else "[ ]"
        typer.echo(f"{done} {i}. {entry.item.title or entry.item.id}  ({entry.weight.priority})")
        if entry.item.link:
            typer.echo(f"      {entry.item.link}")
    typer.echo(f"Completed {report.completed}/{report.total}")


@app.command()
def weights(
    ctx: typer.Context,
    user_id: Annotated[str, typer.Argument(help="User to show.")],
):
    """List active items ranked by scheduling weight."""
    services = _services(ctx)
    ranked = _run(services, services.focus.list_weights(user_id))
    for entry in ranked:
        w = entry.weight
        typer.echo(
            f"{w.weight:>8.2f}  {w.priority:<6}  revisits={w.times_revisited:<3}"
            f"  last={w.days_since_last_revisit}d  {entry.item.title or entry.item.id}"
        )


@app.command("send-now")
def send_now(
    ctx: typer.Context,
    user_id: Annotated[str, typer.Argument(help="User to remind.")],
):
    """Send one user a reminder right away, ignoring the daily gates."""
    services = _services(ctx)
    report = _run(services, services.orchestrator.send_now(user_id))

    color = {"sent": "green", "send_failed": "red"}.get(report.status, "yellow")
    line = f"{report.user_id} <{report.email}>: {report.status}"
    if report.message:
        line += f" ({report.message})"
    typer.secho(line, fg=color)
    typer.echo(
        f"Items: {len(report.items)}  Eligible: {len(report.eligible_ids)}"
        f"  Selected: {len(report.selected_ids)}"
    )
    if report.status == "send_failed":
        raise typer.Exit(1)


@app.command()
def serve(
    port: Annotated[int, typer.Option(help="Port to bind the server to.")] = 8080,
    host: Annotated[str, typer.Option(help="Host to bind the server to.")] = "127.0.0.1",
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Start the HTTP server with the periodic dispatch ticker."""
    import uvicorn

    uvicorn.run("reprise.server:app", host=host, port=port, reload=reload)


# ---------------------------------------------------------------------------
# Config subgroup
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Display final resolved configuration."""
    config = _config(ctx)
    d = {k: str(v) if isinstance(v, Path) else v for k, v in config.model_dump().items()}
    if d.get("resend_api_key"):
        d["resend_api_key"] = "***"
    typer.echo(json.dumps(d, indent=2))


# ---------------------------------------------------------------------------
# User subgroup
# ---------------------------------------------------------------------------


@user_app.command("add")
def user_add(
    ctx: typer.Context,
    user_id: Annotated[str, typer.Argument(help="User ID.")],
    email: Annotated[str, typer.Argument(help="Reminder address.")],
    per_day: Annotated[int, typer.Option(min=1, help="Items per reminder.")] = 3,
    min_days: Annotated[int, typer.Option(min=0, help="Minimum days between revisits.")] = 2,
    email_time: Annotated[
        str | None, typer.Option(help="Local HH:MM before which no reminder is sent.")
    ] = None,
):
    """Create or replace a user."""
    if email_time is not None:
        try:
            parse_email_time(email_time)
        except InvalidEmailTimeError as e:
            typer.secho(str(e), fg="red", err=True)
            raise typer.Exit(1) from None

    services = _services(ctx)
    user = Recipient(
        id=user_id,
        email=email,
        profile=UserSchedulingProfile(
            problems_per_day=per_day,
            min_revisit_days=min_days,
            email_time=email_time,
        ),
    )
    _run(services, services.store.add_user(user))
    typer.secho(f"Saved user {user_id}.", fg="green")


# ---------------------------------------------------------------------------
# Item subgroup
# ---------------------------------------------------------------------------


@item_app.command("add")
def item_add(
    ctx: typer.Context,
    user_id: Annotated[str, typer.Argument(help="Owner of the item.")],
    title: Annotated[str, typer.Argument(help="Item title.")],
    link: Annotated[str, typer.Option(help="Link to the item.")] = "",
    topic: Annotated[str | None, typer.Option(help="Topic tag.")] = None,
    difficulty: Annotated[str | None, typer.Option(help="Difficulty label.")] = None,
):
    """Start tracking a new item."""
    services = _services(ctx)
    item = _run(
        services,
        services.items.add_item(user_id, title, link=link, topic=topic, difficulty=difficulty),
    )
    typer.secho(f"Added {item.id}", fg="green")


@item_app.command("list")
def item_list(
    ctx: typer.Context,
    user_id: Annotated[str, typer.Argument(help="Owner of the items.")],
    all_items: Annotated[bool, typer.Option("--all", help="Include retired items.")] = False,
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """List a user's items, newest first."""
    services = _services(ctx)
    items = _run(services, services.items.list_items(user_id, include_retired=all_items))

    if json_output:
        typer.echo(_to_json([dataclasses.asdict(i) for i in items]))
        return

    if not items:
        typer.secho("No items.", fg="yellow")
        return
    for item in items:
        status = "" if item.status == "active" else f"  [{item.status}]"
        typer.echo(
            f"{item.id}  {item.title or '-'}  revisits={item.times_revisited}"
            f"  added={item.added_at.date().isoformat()}{status}"
        )


@item_app.command("show")
def item_show(
    ctx: typer.Context,
    user_id: Annotated[str, typer.Argument(help="Owner of the item.")],
    item_id: Annotated[str, typer.Argument(help="Item to show.")],
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON.")] = False,
):
    """Show one item with its weight and revisit history."""
    services = _services(ctx)
    detail = _run(services, services.items.get_item_detail(user_id, item_id))

    if json_output:
        typer.echo(_to_json(detail))
        return

    item, w = detail.item, detail.weight
    typer.echo(f"{item.title or item.id}  ({item.id})")
    if item.link:
        typer.echo(f"  Link: {item.link}")
    typer.echo(f"  Status: {item.status}  Topic: {item.topic or '-'}  Difficulty: {item.difficulty or '-'}")
    typer.echo(
        f"  Weight: {w.weight:.2f} ({w.priority})  Eligible: {'yes' if w.is_eligible else 'no'}"
        f"  Revisited today: {'yes' if detail.revisited_today else 'no'}"
    )
    typer.echo(f"  Revisits: {item.times_revisited}")
    for entry in item.history:
        line = f"    {entry.revisited_at.isoformat(timespec='minutes')}"
        if entry.notes:
            line += f"  {entry.notes}"
        typer.echo(line)


@item_app.command("update")
def item_update(
    ctx: typer.Context,
    user_id: Annotated[str, typer.Argument(help="Owner of the item.")],
    item_id: Annotated[str, typer.Argument(help="Item to change.")],
    title: Annotated[str | None, typer.Option(help="New title.")] = None,
    link: Annotated[str | None, typer.Option(help="New link.")] = None,
    topic: Annotated[str | None, typer.Option(help="New topic tag.")] = None,
    difficulty: Annotated[str | None, typer.Option(help="New difficulty label.")] = None,
):
    """Change an item's title, link, topic or difficulty."""
    services = _services(ctx)
    item = _run(
        services,
        services.items.update_item(
            user_id, item_id, title=title, link=link, topic=topic, difficulty=difficulty
        ),
    )
    typer.secho(f"Updated {item.id}", fg="green")


@item_app.command("revisit")
def item_revisit(
    ctx: typer.Context,
    user_id: Annotated[str, typer.Argument(help="Owner of the item.")],
    item_id: Annotated[str, typer.Argument(help="Item to mark as revisited.")],
    notes: Annotated[str | None, typer.Option(help="Notes to keep with this revisit.")] = None,
):
    """Record a revisit (at most once per day)."""
    services = _services(ctx)
    item = _run(services, services.items.record_revisit(user_id, item_id, notes=notes))
    typer.secho(f"Revisited {item.id} ({item.times_revisited} total)", fg="green")


@item_app.command("archive")
def item_archive(
    ctx: typer.Context,
    user_id: Annotated[str, typer.Argument(help="Owner of the item.")],
    item_id: Annotated[str, typer.Argument(help="Item to retire.")],
):
    """Retire an item so it is no longer scheduled."""
    services = _services(ctx)
    item = _run(services, services.items.archive_item(user_id, item_id))
    typer.secho(f"Archived {item.id}", fg="green")


@item_app.command("delete")
def item_delete(
    ctx: typer.Context,
    user_id: Annotated[str, typer.Argument(help="Owner of the item.")],
    item_id: Annotated[str, typer.Argument(help="Item to remove.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation.")] = False,
):
    """Permanently remove an item and its revisit history."""
    if not yes:
        typer.confirm(f"Delete {item_id} and its history?", abort=True)
    services = _services(ctx)
    _run(services, services.items.delete_item(user_id, item_id))
    typer.secho(f"Deleted {item_id}", fg="green")


def main():
    app()


if __name__ == "__main__":
    main()
