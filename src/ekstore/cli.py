"""ekstore CLI - inspect the calendar and reminder store."""

import asyncio
import json
import logging
import sys
from datetime import datetime, timedelta

import click

from .config import BACKENDS, load_config
from .core.errors import EventStoreError
from .core.models import Calendar, CalendarItem, Event, Reminder, Source
from .store import EventStore, open_store


def _fail(error: Exception) -> None:
    click.echo(f"Error: {error}", err=True)
    sys.exit(1)


def _open(ctx: click.Context) -> EventStore:
    """Open the store for this invocation, honouring a backend injected via ``obj``."""
    try:
        return open_store(ctx.obj["config"], backend=ctx.obj.get("backend"))
    except EventStoreError as e:
        _fail(e)


def _echo_json(entities) -> None:
    if isinstance(entities, list):
        payload = [e.to_dict() for e in entities]
    else:
        payload = entities.to_dict() if entities is not None else None
    click.echo(json.dumps(payload, indent=2))


def _format_when(value: datetime | None, all_day: bool = False) -> str:
    if value is None:
        return "-"
    return value.strftime("%a %b %d") if all_day else value.strftime("%a %b %d %H:%M")


def _format_event(event: Event) -> str:
    when = "All day" if event.is_all_day else _format_when(event.start_date)
    location = f" @ {event.location}" if event.location else ""
    return f"{when:17} {event.title}{location} [{event.calendar_title}]"


def _format_reminder(reminder: Reminder) -> str:
    box = "[x]" if reminder.completed else "[ ]"
    due = f" (due {_format_when(reminder.due_date)})" if reminder.due_date else ""
    priority = f" !{reminder.priority}" if reminder.priority else ""
    return f"{box} {reminder.title}{due}{priority} [{reminder.calendar_title}]"


def _format_item(item: CalendarItem) -> str:
    if isinstance(item.item, Event):
        return f"event     {item.item.id}  {_format_event(item.item)}"
    return f"reminder  {item.item.id}  {_format_reminder(item.item)}"


@click.group()
@click.version_option(package_name="ekstore")
@click.option("--backend", type=click.Choice(BACKENDS), help="Override the configured backend")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(ctx, backend: str | None, debug: bool):
    """ekstore - calendar and reminder store access."""
    ctx.ensure_object(dict)
    config = ctx.obj.get("config") or load_config()
    if backend:
        config.backend = backend
    ctx.obj["config"] = config
    logging.basicConfig(
        level=logging.DEBUG if debug else config.log_level,
        format="%(asctime)s %(name)s %(levelname)s: %(message)s",
    )


@main.command()
@click.pass_context
def status(ctx):
    """Show authorization status for events and reminders."""
    with _open(ctx) as store:
        try:
            events = store.get_authorization_status("event")
            reminders = store.get_authorization_status("reminder")
        except EventStoreError as e:
            _fail(e)
    click.echo(f"Backend:   {ctx.obj['config'].backend}")
    click.echo(f"Events:    {events.value}")
    click.echo(f"Reminders: {reminders.value}")


@main.command("request-access")
@click.option("--reminders", is_flag=True, help="Request reminder access instead of event access")
@click.option("--write-only", is_flag=True, help="Request write-only event access")
@click.pass_context
def request_access(ctx, reminders: bool, write_only: bool):
    """Ask the system for calendar or reminder access."""
    if reminders and write_only:
        raise click.UsageError("--write-only applies to events only")
    with _open(ctx) as store:
        if reminders:
            label, granted = "reminders", asyncio.run(store.request_full_access_to_reminders())
        elif write_only:
            label, granted = "events (write-only)", asyncio.run(store.request_write_only_access_to_events())
        else:
            label, granted = "events", asyncio.run(store.request_full_access_to_events())
    click.echo(f"Access to {label}: {'granted' if granted else 'denied'}")
    if not granted:
        sys.exit(1)


@main.command()
@click.option("--type", "entity_type", type=click.Choice(["event", "reminder"]), help="Entity type")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def calendars(ctx, entity_type: str | None, as_json: bool):
    """List calendars."""
    with _open(ctx) as store:
        try:
            found: list[Calendar] = asyncio.run(store.get_calendars(entity_type))
        except EventStoreError as e:
            _fail(e)

    if as_json:
        _echo_json(found)
        return
    if not found:
        click.echo("No calendars.")
        return
    for calendar in found:
        lock = "" if calendar.allows_content_modifications else " (read-only)"
        click.echo(f"{calendar.color.hex}  {calendar.title}{lock} [{calendar.source}]  {calendar.id}")


@main.command()
@click.option("--delegate", is_flag=True, help="List delegate sources")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def sources(ctx, delegate: bool, as_json: bool):
    """List calendar sources (accounts)."""
    with _open(ctx) as store:
        fetch = store.get_delegate_sources if delegate else store.get_sources
        found: list[Source] = asyncio.run(fetch())

    if as_json:
        _echo_json(found)
        return
    if not found:
        click.echo("No sources.")
        return
    for source in found:
        click.echo(f"{source.title} ({source.source_type.value})  {source.id}")


@main.command()
@click.option("--days", type=int, help="Number of days ahead to show")
@click.option("--calendar", "calendar_ids", multiple=True, help="Restrict to calendar id (repeatable)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def events(ctx, days: int | None, calendar_ids: tuple[str, ...], as_json: bool):
    """List upcoming events."""
    days = days if days is not None else ctx.obj["config"].lookahead_days
    start = datetime.now().replace(hour=0, minute=0, second=0, microsecond=0)
    end = start + timedelta(days=days)

    with _open(ctx) as store:
        try:
            predicate = store.create_event_predicate(start, end, calendar_ids or None)
            found: list[Event] = asyncio.run(store.get_events_with_predicate(predicate))
        except EventStoreError as e:
            _fail(e)

    if as_json:
        _echo_json(found)
        return
    if not found:
        click.echo(f"No events in the next {days} day(s).")
        return
    for event in found:
        click.echo(_format_event(event))


@main.command()
@click.option("--incomplete", "state", flag_value="incomplete", help="Only incomplete reminders")
@click.option("--completed", "state", flag_value="completed", help="Only completed reminders")
@click.option("--calendar", "calendar_ids", multiple=True, help="Restrict to calendar id (repeatable)")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def reminders(ctx, state: str | None, calendar_ids: tuple[str, ...], as_json: bool):
    """List reminders."""
    with _open(ctx) as store:
        try:
            match state:
                case "incomplete":
                    predicate = store.create_incomplete_reminder_predicate(calendar_ids=calendar_ids or None)
                case "completed":
                    predicate = store.create_completed_reminder_predicate(calendar_ids=calendar_ids or None)
                case _:
                    predicate = store.create_reminder_predicate(calendar_ids or None)
            found: list[Reminder] = asyncio.run(store.get_reminders_with_predicate(predicate))
        except EventStoreError as e:
            _fail(e)

    if as_json:
        _echo_json(found)
        return
    if not found:
        click.echo("No reminders.")
        return
    for reminder in found:
        click.echo(_format_reminder(reminder))


@main.command()
@click.argument("item_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def item(ctx, item_id: str, as_json: bool):
    """Look up an event or reminder by identifier."""
    with _open(ctx) as store:
        found = asyncio.run(store.get_calendar_item(item_id))

    if as_json:
        _echo_json(found)
        return
    if found is None:
        click.echo(f"No calendar item with id {item_id}.", err=True)
        sys.exit(1)
    click.echo(_format_item(found))


@main.command()
@click.argument("external_id")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.pass_context
def external(ctx, external_id: str, as_json: bool):
    """Look up events and reminders by external identifier."""
    with _open(ctx) as store:
        found = asyncio.run(store.get_calendar_items_with_external_identifier(external_id))

    if as_json:
        _echo_json(found or [])
        return
    if not found:
        click.echo(f"No calendar items with external id {external_id}.", err=True)
        sys.exit(1)
    for entry in found:
        click.echo(_format_item(entry))


if __name__ == "__main__":
    main()
