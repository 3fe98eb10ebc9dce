"""
Care CLI

Command-line interface for operating the engagement and notification pipeline.

Commands:
- send-event: Publish an engagement event to the log
- replay: Read a log topic from the earliest offset
- game-state: Show a user's game state
- request: Correlated request/response round trip over pub/sub
- publish-direct: Call the notification bridge with a direct-path event
"""

import asyncio
import json
from datetime import datetime, timezone
from typing import Optional

import typer
from rich import print as rprint
from rich.console import Console
from rich.table import Table

from basecore.settings import get_settings
from messaging_core.contracts import parse_event
from messaging_core.errors import BridgeCallError, EventValidationError, MessagingError

app = typer.Typer(
    name="care-cli",
    help="Care platform messaging CLI",
)

console = Console()


def get_db():
    """Get database session."""
    from basecore.db import get_db as _get_db
    return next(_get_db())


def get_log():
    """Get the partitioned log."""
    from basecore.redis import get_redis_client
    from messaging_core.log import RedisStreamLog

    settings = get_settings()
    return RedisStreamLog(get_redis_client(), partitions=settings.LOG_PARTITIONS, max_len=settings.LOG_MAX_LEN)


def get_transport():
    """Get a pub/sub transport (not yet connected)."""
    from messaging_core.transport import RedisPubSubTransport
    return RedisPubSubTransport(get_settings().REDIS_URL)


def get_bridge():
    """Get the notification bridge client."""
    from notifications_core.bridge import NotificationBridgeClient

    settings = get_settings()
    return NotificationBridgeClient(settings.NOTIFICATION_API_URL, timeout=settings.BRIDGE_TIMEOUT_S)


def _build_event(event_type: str, user_id: str, action: Optional[str], event_id: Optional[str],
                 target: Optional[list[str]], payload: Optional[str], **fields):
    data = {
        "type": event_type,
        "userId": user_id,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        **{k: v for k, v in fields.items() if v is not None},
    }
    if action:
        data["action"] = action
    if event_id:
        data["eventId"] = event_id
    if target:
        data["target"] = target
    if payload:
        try:
            data["payload"] = json.loads(payload)
        except json.JSONDecodeError:
            rprint(f"[red]Payload is not valid JSON: {payload}[/red]")
            raise typer.Exit(1)

    try:
        return parse_event(data)
    except EventValidationError as e:
        rprint(f"[red]Invalid event: {e}[/red]")
        raise typer.Exit(1)


@app.command()
def send_event(
    user_id: str = typer.Argument(..., help="User id"),
    event_type: str = typer.Option("daily_checkin", "--type", help="Event type"),
    action: Optional[str] = typer.Option(None, help="Action (default: the type)"),
    event_id: Optional[str] = typer.Option(None, help="Idempotency key"),
    target: Optional[list[str]] = typer.Option(None, help="Audience (repeatable): dashboard, mobile, sms"),
    payload: Optional[str] = typer.Option(None, help="JSON payload, e.g. '{\"score\": 8}'"),
):
    """Publish an engagement event to the engagement log."""
    from gamification_core.producer import EngagementProducer

    event = _build_event(event_type, user_id, action or event_type, event_id, target, payload)
    record = EngagementProducer(get_log(), get_settings().ENGAGEMENT_TOPIC).publish(event)

    rprint(f"[green]Published {event.type} for {user_id}[/green]")
    rprint(f"  Record: {record.record_id}")


@app.command()
def replay(
    topic: Optional[str] = typer.Argument(None, help="Topic (default: engagement topic)"),
    partition: Optional[list[int]] = typer.Option(None, help="Partition (repeatable, default: all)"),
    count: int = typer.Option(20, help="Max records per partition"),
):
    """Read a log topic from the earliest offset (no consumer group)."""
    topic = topic or get_settings().ENGAGEMENT_TOPIC
    records = get_log().replay(topic, partition or None, count)

    if not records:
        rprint(f"[yellow]No records in {topic}[/yellow]")
        return

    table = Table(title=f"{topic} ({len(records)} records)")
    table.add_column("Partition")
    table.add_column("Offset")
    table.add_column("Key")
    table.add_column("Value")

    for record in records:
        value = record.value if len(record.value) <= 80 else record.value[:77] + "..."
        table.add_row(str(record.partition), record.offset, record.key, value)

    console.print(table)


@app.command()
def game_state(user_id: str = typer.Argument(..., help="User id")):
    """Show a user's game state."""
    from gamification_core.persistence import GameStateRepository

    db = get_db()
    try:
        state = GameStateRepository(db).get(user_id)
    finally:
        db.close()

    if state is None:
        rprint(f"[yellow]No game state for {user_id}[/yellow]")
        raise typer.Exit(1)

    table = Table(title=f"Game state: {user_id}")
    table.add_column("Field")
    table.add_column("Value")
    table.add_row("Points", str(state.points))
    table.add_row("Level", str(state.level))
    table.add_row("Streak", str(state.streak))
    table.add_row("Badges", ", ".join(sorted(state.badges)) or "-")

    console.print(table)


@app.command()
def request(
    topic: str = typer.Argument(..., help="Request topic, e.g. games/request/list"),
    payload: str = typer.Argument("{}", help="JSON request body"),
    timeout_ms: Optional[int] = typer.Option(None, help="Reply deadline (default: RESPONSE_TIMEOUT_MS)"),
):
    """Send a correlated request and print the reply."""
    from messaging_core.correlation import CorrelatedRequestClient

    try:
        body = json.loads(payload)
    except json.JSONDecodeError:
        rprint(f"[red]Payload is not valid JSON: {payload}[/red]")
        raise typer.Exit(1)

    settings = get_settings()

    async def round_trip():
        client = CorrelatedRequestClient(
            get_transport(),
            namespace=settings.RESPONSE_NAMESPACE,
            default_timeout_ms=settings.RESPONSE_TIMEOUT_MS,
        )
        await client.start()
        try:
            return await client.send(topic, body, timeout_ms=timeout_ms)
        finally:
            await client.disconnect()

    try:
        result = asyncio.run(round_trip())
    except (MessagingError, ConnectionError, TimeoutError) as e:
        rprint(f"[red]Request failed ({type(e).__name__}): {e}[/red]")
        raise typer.Exit(1)

    console.print_json(json.dumps(result))


@app.command()
def publish_direct(
    user_id: str = typer.Argument(..., help="User id"),
    event_type: str = typer.Option("checkin", "--type", help="Event type (must be routed direct)"),
    mood: Optional[str] = typer.Option(None, help="Check-in mood"),
    event_id: Optional[str] = typer.Option(None, help="Idempotency key"),
    target: Optional[list[str]] = typer.Option(None, help="Audience (repeatable)"),
):
    """Call PublishEvent on the notification bridge."""
    event = _build_event(event_type, user_id, None, event_id, target, None, mood=mood)

    bridge = get_bridge()
    try:
        bridge.publish_event(event)
    except BridgeCallError as e:
        rprint(f"[red]PublishEvent failed: {e}[/red]")
        raise typer.Exit(1)
    finally:
        bridge.close()

    rprint(f"[green]Notification service accepted {event.type} for {user_id}[/green]")


def main():
    app()


if __name__ == "__main__":
    main()
