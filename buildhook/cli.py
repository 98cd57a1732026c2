"""buildhook CLI — typer-based command interface."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

import typer

app = typer.Typer(
    name="buildhook",
    help="buildhook — build status cards for chat webhooks",
    no_args_is_help=True,
)

# -------------------------------------------------------------------
# Templates
# -------------------------------------------------------------------

DEFAULT_CONFIG_TEMPLATE = """\
# .buildhook/config.yaml — team-shared configuration
dispatch:
  max_workers: 4
  max_pending: 64
  default_timeout: 30

logging:
  level: INFO

webhooks:
  - name: team-channel
    url: https://example.webhook.office.com/webhookb2/REPLACE_ME
    start_notification: false
    notify_success: false
    notify_aborted: false
    notify_not_built: false
    notify_unstable: true
    notify_failure: true
    notify_back_to_normal: true
    notify_repeated_failure: false
    # Only notify for the main branch:
    # macros:
    #   - template: "${BRANCH_NAME}"
    #     value: main
"""

DEFAULT_LOCAL_CONFIG_TEMPLATE = """\
# .buildhook/local.config.yaml — personal overrides (DO NOT commit)
# logging:
#   level: DEBUG
"""

GITIGNORE_ENTRIES = [
    ".buildhook/local.config.yaml",
]


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------

def _get_project_root() -> Path:
    return Path.cwd()


def _configure_logging(config) -> None:
    level = getattr(logging, config.logging.level.upper(), logging.INFO)
    logging.basicConfig(level=level, format=config.logging.format, datefmt="%Y-%m-%d %H:%M:%S")


def _load(snapshot: Path):
    from .build import load_snapshot
    from .config import ConfigError, load_config

    try:
        config = load_config(_get_project_root())
    except ConfigError as e:
        typer.echo(f"  Config Error: {e}", err=True)
        raise typer.Exit(1)
    _configure_logging(config)
    try:
        run = load_snapshot(snapshot)
    except (OSError, ValueError, KeyError) as e:
        typer.echo(f"  Invalid snapshot {snapshot}: {e}", err=True)
        raise typer.Exit(1)
    return config, run


def _notifier(config, run):
    from .notifier import WebhookNotifier

    return WebhookNotifier(
        run,
        config.webhooks,
        max_workers=config.dispatch.max_workers,
        max_pending=config.dispatch.max_pending,
    )


def _run_notify(coro) -> None:
    """Run a notification; a broken macro never fails the calling build."""
    from .host import MacroEvaluationError

    try:
        card = asyncio.run(coro)
    except MacroEvaluationError as e:
        typer.echo(f"  Notification skipped, macro error: {e}", err=True)
        return
    if card is not None:
        typer.echo(f"  Sent: {card.summary}")


# -------------------------------------------------------------------
# Commands
# -------------------------------------------------------------------

@app.command()
def init():
    """Initialize buildhook in the current project."""
    root = _get_project_root()

    config_dir = root / ".buildhook"
    config_dir.mkdir(exist_ok=True)

    config_path = config_dir / "config.yaml"
    if not config_path.exists():
        config_path.write_text(DEFAULT_CONFIG_TEMPLATE)
        typer.echo(f"  Created {config_path.relative_to(root)}")
    else:
        typer.echo(f"  Exists  {config_path.relative_to(root)}")

    local_path = config_dir / "local.config.yaml"
    if not local_path.exists():
        local_path.write_text(DEFAULT_LOCAL_CONFIG_TEMPLATE)
        typer.echo(f"  Created {local_path.relative_to(root)}")

    gitignore_path = root / ".gitignore"
    existing = ""
    if gitignore_path.exists():
        existing = gitignore_path.read_text()
    additions = [e for e in GITIGNORE_ENTRIES if e not in existing]
    if additions:
        with open(gitignore_path, "a") as f:
            if existing and not existing.endswith("\n"):
                f.write("\n")
            f.write("# buildhook\n")
            for entry in additions:
                f.write(f"{entry}\n")
        typer.echo("  Updated .gitignore")

    typer.echo("\n  buildhook initialized. Edit .buildhook/config.yaml to add webhooks.")


@app.command()
def started(
    snapshot: Path = typer.Argument(..., help="Build snapshot (JSON or YAML)"),
    pre_build: bool = typer.Option(False, "--pre-build/--main", help="Phase the event comes from"),
):
    """Send the build-started notification."""
    config, run = _load(snapshot)
    _run_notify(_notifier(config, run).on_build_started(pre_build))


@app.command()
def completed(
    snapshot: Path = typer.Argument(..., help="Build snapshot (JSON or YAML)"),
):
    """Send the build-completed notification."""
    config, run = _load(snapshot)
    _run_notify(_notifier(config, run).on_build_completed())


@app.command()
def message(
    snapshot: Path = typer.Argument(..., help="Build snapshot (JSON or YAML)"),
    text: Optional[str] = typer.Option(None, "--message", "-m", help="Message shown as the card subtitle"),
    status: Optional[str] = typer.Option(None, "--status", help="Status fact, or 'started'"),
    color: Optional[str] = typer.Option(None, "--color", help="Theme color override (hex)"),
    webhook_url: Optional[str] = typer.Option(None, "--webhook-url", help="Used when no webhooks are configured"),
):
    """Send a custom message to every configured webhook."""
    from .models import MessageParameters

    config, run = _load(snapshot)
    params = MessageParameters(message=text, status=status, color=color, webhook_url=webhook_url)
    _run_notify(_notifier(config, run).on_custom_message(params))


@app.command()
def preview(
    snapshot: Path = typer.Argument(..., help="Build snapshot (JSON or YAML)"),
    event: str = typer.Option("completed", "--event", help="started | completed"),
):
    """Print the card that would be sent, without sending it."""
    from .cards import CardFactory, card_to_dict

    _, run = _load(snapshot)
    factory = CardFactory(run)
    if event == "started":
        card = factory.started_card()
    elif event == "completed":
        card = factory.completed_card()
    else:
        typer.echo(f"  Unknown event '{event}'", err=True)
        raise typer.Exit(1)
    typer.echo(json.dumps(card_to_dict(card), indent=2, ensure_ascii=False))


@app.command("config")
def config_show():
    """Show merged configuration."""
    root = _get_project_root()

    from .config import ConfigError, load_config
    import yaml

    try:
        config = load_config(root)
    except ConfigError as e:
        typer.echo(f"  Config Error: {e}", err=True)
        raise typer.Exit(1)

    from dataclasses import asdict
    data = asdict(config)
    for w in data.get("webhooks") or []:
        # Webhook URLs usually embed a secret token.
        if len(w["url"]) > 40:
            w["url"] = w["url"][:40] + "..."

    typer.echo("\n  buildhook — Merged Configuration")
    typer.echo("  " + "─" * 40)
    typer.echo(yaml.dump(data, default_flow_style=False, allow_unicode=True))


if __name__ == "__main__":
    app()
