"""CLI entry point for paper courier."""

import asyncio
import signal
from datetime import datetime
from pathlib import Path

import typer

from paper_courier.adapters.mail import SMTPMailer
from paper_courier.adapters.sources import ScienceDirectSource
from paper_courier.adapters.store import YamlDeliveryStore
from paper_courier.config import Settings, get_settings
from paper_courier.core import (
    DeliveryCancelled,
    DeliveryStatus,
    DigestBuilder,
    DigestMessage,
    InvalidConfig,
    SendError,
    StoreError,
)
from paper_courier.logging_config import setup_logging
from paper_courier.use_cases import DeliveryScheduler, utc_now

app = typer.Typer(help="Weekly keyword digest of new journal articles, delivered by email.")

ConfigOption = typer.Option(Path("config.yaml"), "--config", "-c", help="Path to config.yaml")


def load_settings(config_path: Path, full: bool = True) -> Settings:
    """Load settings or exit with code 2 on invalid configuration."""
    try:
        settings = get_settings(config_path)
        if full:
            settings.validate()
        else:
            settings.schedule_spec()
        return settings
    except InvalidConfig as e:
        typer.echo(f"❌ Invalid configuration: {e}", err=True)
        raise typer.Exit(code=2)


def build_scheduler(settings: Settings) -> DeliveryScheduler:
    """Wire adapters into a scheduler."""
    keywords = settings.keyword_set()
    if not keywords.terms:
        raise InvalidConfig("ScienceDirect search needs at least one concrete keyword besides '*'")

    try:
        store = YamlDeliveryStore(settings.records_dir)
    except StoreError as e:
        raise InvalidConfig(str(e)) from e

    return DeliveryScheduler(
        schedule=settings.schedule_spec(),
        keywords=keywords,
        fetcher=ScienceDirectSource(
            max_items_per_keyword=settings.source.max_items_per_keyword,
            request_delay=settings.source.request_delay,
        ),
        builder=DigestBuilder(settings.recipient_email),
        mailer=SMTPMailer(
            host=settings.smtp.host,
            port=settings.smtp.port,
            security=settings.smtp.security,
            sender_name=settings.smtp.sender_name,
        ),
        store=store,
        credentials=settings.credentials,
        retry_policy=settings.retry_policy,
        fetch_timeout=settings.delivery.fetch_timeout,
        send_timeout=settings.delivery.send_timeout,
    )


def _prepare(config: Path) -> tuple[Settings, DeliveryScheduler]:
    settings = load_settings(config)
    setup_logging(settings.log_level, settings.log_dir)
    try:
        return settings, build_scheduler(settings)
    except InvalidConfig as e:
        typer.echo(f"❌ Invalid configuration: {e}", err=True)
        raise typer.Exit(code=2)


@app.command()
def run(config: Path = ConfigOption) -> None:
    """Run the weekly delivery loop until interrupted."""
    settings, scheduler = _prepare(config)

    typer.echo("\n" + "=" * 70)
    typer.echo("📬  PAPER COURIER")
    typer.echo("=" * 70)
    typer.echo(f"  • Schedule: {scheduler.schedule.describe()} ({settings.schedule.timezone})")
    typer.echo(f"  • Keywords: {scheduler.keywords.describe()}")
    typer.echo(f"  • Recipient: {settings.recipient_email}")
    typer.echo(f"  • Records: {settings.records_dir}")

    asyncio.run(_run_until_signalled(scheduler))


async def _run_until_signalled(scheduler: DeliveryScheduler) -> None:
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Not supported on this platform; Ctrl-C still raises KeyboardInterrupt
            pass
    await scheduler.run(stop_event)


@app.command()
def once(config: Path = ConfigOption) -> None:
    """Deliver the digest for the current period now, unless it was already delivered."""
    _, scheduler = _prepare(config)

    try:
        outcome = asyncio.run(scheduler.run_once())
    except DeliveryCancelled as e:
        typer.echo(f"⚠️  Cancelled: {e}")
        raise typer.Exit(code=1)

    if outcome.skipped:
        typer.echo(f"✓ {outcome.period_key} already recorded as {outcome.status.value}")
    elif outcome.status is DeliveryStatus.SUCCESS:
        typer.echo(f"✅ {outcome.period_key} delivered ({outcome.item_count} items)")
    else:
        typer.echo(f"❌ {outcome.period_key}: {outcome.note or 'not delivered'}")
        raise typer.Exit(code=1)


@app.command("next-run")
def next_run(config: Path = ConfigOption) -> None:
    """Show when the next digest is due."""
    settings = load_settings(config, full=False)
    spec = settings.schedule_spec()
    fire_at = spec.resolve_next(utc_now())
    typer.echo(f"{fire_at.isoformat()} {spec.period_key(fire_at)}")


@app.command()
def history(
    config: Path = ConfigOption,
    limit: int = typer.Option(20, "--limit", "-n", help="Number of records to show"),
) -> None:
    """List recorded deliveries, newest first."""
    settings = load_settings(config, full=False)
    try:
        records = YamlDeliveryStore(settings.records_dir).list_records(limit=limit)
    except StoreError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=1)

    if not records:
        typer.echo("No deliveries recorded yet")
        return

    for record in records:
        mark = "✓" if record.status is DeliveryStatus.SUCCESS else "✗"
        line = f"{mark} {record.period_key}  {record.status.value:<7}  {record.sent_at.isoformat()}"
        if record.note:
            line += f"  {record.note}"
        typer.echo(line)


@app.command("test-email")
def test_email(config: Path = ConfigOption) -> None:
    """Send a test message to check the SMTP settings. Nothing is recorded."""
    settings = load_settings(config)
    setup_logging(settings.log_level, settings.log_dir)

    mailer = SMTPMailer(
        host=settings.smtp.host,
        port=settings.smtp.port,
        security=settings.smtp.security,
        sender_name=settings.smtp.sender_name,
    )
    now = datetime.now().astimezone()
    message = DigestMessage(
        recipient=settings.recipient_email,
        subject="Paper courier test email",
        body="If you received this, your email settings are working correctly.",
        built_at=now,
        period_key=settings.schedule_spec().period_key(now),
    )

    try:
        asyncio.run(mailer.send(message, settings.credentials, settings.delivery.send_timeout))
    except SendError as e:
        typer.echo(f"❌ Test email failed: {e}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"✓ Test email sent to {settings.recipient_email}")


if __name__ == "__main__":
    app()
