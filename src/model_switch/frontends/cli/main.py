"""CLI entry point."""

from __future__ import annotations

import asyncio
import json
import os
import sys
from pathlib import Path
from typing import NoReturn

import rich_click as click

from model_switch import daemon
from model_switch.core.config import ConfigError, ProfileConfig, config_path
from model_switch.frontends.cli.profiles import (
    PROG,
    ProfileError,
    add_provider,
    format_list,
    remove_provider,
    setup_credentials,
    use_provider,
)

DEFAULT_PORT = 4000

click.rich_click.USE_RICH_MARKUP = True
click.rich_click.USE_MARKDOWN = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = "Try running '--help' for more information."
click.rich_click.ERRORS_EPILOGUE = ""
click.rich_click.MAX_WIDTH = 100


def _fail(message: str) -> NoReturn:
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def _load() -> ProfileConfig:
    try:
        return ProfileConfig.load()
    except ConfigError as e:
        _fail(str(e))


def _save_and_notify(config: ProfileConfig) -> None:
    config.save()
    if daemon.notify_reload():
        click.echo("Proxy notified to reload configuration.")


@click.group()
@click.version_option(package_name="claude-model-switch", prog_name=PROG)
def cli() -> None:
    """Local API proxy for seamless Claude Code model provider switching.

    Point Claude Code at the proxy once (`init`), then switch providers
    with `use` while it keeps running.

    **Gateway:**

        claude-model-switch start     Start the proxy in the background

        claude-model-switch stop      Stop the proxy

    **Profiles:**

        claude-model-switch use       Switch the active provider

        claude-model-switch add       Add or update a provider
    """
    pass


# =========================================================================
# Gateway lifecycle
# =========================================================================


@cli.command()
@click.option("--port", "-p", default=DEFAULT_PORT, show_default=True, help="Port to listen on")
@click.option("--host", default="127.0.0.1", show_default=True, help="Host to bind")
@click.option("--foreground", is_flag=True, hidden=True, help="Run in the foreground")
@click.option(
    "--log-level", default=None, help="Log level (default: MODEL_SWITCH_LOG_LEVEL or INFO)"
)
def start(port: int, host: str, foreground: bool, log_level: str | None) -> None:
    """Start the proxy server.

    Runs in the background unless `--foreground` is given. Requests to
    `/p/<provider>/...` go to that provider; everything else goes to the
    active one.
    """
    if not foreground:
        try:
            pid = daemon.start_daemon(port, host=host)
        except daemon.DaemonError as e:
            _fail(str(e))
        click.echo(f"Proxy started on http://{host}:{port} (PID {pid})")
        return

    from model_switch.core.logging_config import configure_logging
    from model_switch.gateway.proxy import GatewayConfig, GatewayServer
    from model_switch.gateway.store import ConfigStore

    configure_logging(level=log_level)
    try:
        store = ConfigStore.open(ProfileConfig.load)
    except ConfigError as e:
        _fail(str(e))

    server = GatewayServer(config=GatewayConfig(host=host, port=port), store=store)
    pid = os.getpid()
    daemon.write_pid(pid)
    try:
        asyncio.run(server.serve())
    finally:
        if daemon.read_pid() == pid:
            daemon.remove_pid_file()


@cli.command()
def stop() -> None:
    """Stop the proxy server."""
    try:
        pid, was_running = daemon.stop_daemon()
    except daemon.DaemonError as e:
        _fail(str(e))
    if was_running:
        click.echo(f"Proxy stopped (PID {pid}).")
    else:
        click.echo(f"Process {pid} was not running. Cleaned up PID file.")


# =========================================================================
# Profiles
# =========================================================================


@cli.command()
@click.argument("provider")
def use(provider: str) -> None:
    """Switch to a provider."""
    try:
        config = use_provider(_load(), provider)
    except ProfileError as e:
        _fail(str(e))
    config.save()
    click.echo(f"Switched to: {provider}")
    if daemon.notify_reload():
        click.echo("Proxy notified to reload configuration.")
    else:
        click.echo(f"Note: Proxy is not running. Start it with: {PROG} start")


@cli.command()
@click.argument("provider")
@click.option("--api-key", default=None, help="API key (sent as x-api-key and bearer token)")
@click.option("--auth-token", default=None, help="Bearer token")
def setup(provider: str, api_key: str | None, auth_token: str | None) -> None:
    """Register API credentials for a provider."""
    try:
        config = setup_credentials(_load(), provider, api_key=api_key, auth_token=auth_token)
    except ProfileError as e:
        _fail(str(e))
    _save_and_notify(config)
    click.echo(f"Credentials saved for '{provider}'.")


@cli.command()
@click.argument("name")
@click.argument("input1", required=False)
@click.argument("input2", required=False)
@click.option("--base-url", default=None, help="Upstream base URL (optional for presets)")
@click.option("--haiku", default=None, help="Model for haiku requests")
@click.option("--sonnet", default=None, help="Model for sonnet requests")
@click.option("--opus", default=None, help="Model for opus requests")
@click.option("--api-key", default=None, help="API key to save immediately")
@click.option("--auth-token", default=None, help="Bearer token to save immediately")
def add(
    name: str,
    input1: str | None,
    input2: str | None,
    base_url: str | None,
    haiku: str | None,
    sonnet: str | None,
    opus: str | None,
    api_key: str | None,
    auth_token: str | None,
) -> None:
    """Add a custom provider.

    **Examples:**

        claude-model-switch add glm sk-...

        claude-model-switch add mine https://example.com/anthropic bearer:tok

        claude-model-switch add mine --base-url https://example.com --haiku a --sonnet b --opus c
    """
    try:
        result = add_provider(
            _load(),
            name,
            input1=input1,
            input2=input2,
            base_url=base_url,
            haiku=haiku,
            sonnet=sonnet,
            opus=opus,
            api_key=api_key,
            auth_token=auth_token,
        )
    except ProfileError as e:
        _fail(str(e))

    _save_and_notify(result.config)
    provider = result.provider
    click.echo(f"{'Updated' if result.updated else 'Added'} provider '{name}'.")
    if result.base_url_source == "existing":
        click.echo(f"Base URL reused from existing provider: {provider.base_url}")
    elif result.base_url_source == "preset":
        click.echo(f"Base URL preset applied: {name.lower()} -> {provider.base_url}")
    if provider.models is not None:
        click.echo("Model rewriting: enabled for Claude tiers (haiku/sonnet/opus).")
    else:
        click.echo("Model rewriting: passthrough (all model IDs forwarded as-is).")
    if provider.has_credentials:
        click.echo(f"Credentials saved for '{name}'.")
    else:
        click.echo(f"Now run: {PROG} setup {name} --api-key <YOUR_KEY>")


@cli.command()
@click.argument("name")
def remove(name: str) -> None:
    """Remove a provider."""
    try:
        config, active_reset = remove_provider(_load(), name)
    except ProfileError as e:
        _fail(str(e))
    _save_and_notify(config)
    if active_reset:
        click.echo(f"Active provider was '{name}', switched back to '{config.active}'.")
    click.echo(f"Removed provider '{name}'.")


@cli.command(name="list")
def list_providers() -> None:
    """List available providers."""
    for line in format_list(_load()):
        click.echo(line)


@cli.command()
def status() -> None:
    """Show current status."""
    config = _load()
    try:
        provider = config.active_provider()
    except ConfigError as e:
        _fail(str(e))

    click.echo(f"Active provider: {config.active}")
    click.echo(f"Base URL: {provider.base_url}")
    if provider.models is not None:
        click.echo(f"Haiku  -> {provider.models.haiku}")
        click.echo(f"Sonnet -> {provider.models.sonnet}")
        click.echo(f"Opus   -> {provider.models.opus}")
    else:
        click.echo("Models: passthrough (no rewriting)")

    pid = daemon.read_pid()
    if pid is not None and daemon.process_alive(pid):
        click.echo(f"Proxy: running (PID {pid})")
    else:
        click.echo("Proxy: not running")


@cli.command()
@click.option(
    "--port", "-p", default=DEFAULT_PORT, show_default=True, help="Port the proxy will use"
)
def init(port: int) -> None:
    """First-time setup.

    Points Claude Code at the proxy via `ANTHROPIC_BASE_URL` in
    `~/.claude/settings.json` and writes the default profiles.
    """
    settings_path = Path.home() / ".claude" / "settings.json"
    base_url = f"http://localhost:{port}/v1"

    settings: dict = {}
    if settings_path.exists():
        try:
            settings = json.loads(settings_path.read_text())
        except ValueError as e:
            _fail(f"Failed to parse {settings_path}: {e}")
        if not isinstance(settings, dict):
            _fail("settings.json is not an object")
    env = settings.setdefault("env", {})
    if not isinstance(env, dict):
        _fail("env is not an object")
    env["ANTHROPIC_BASE_URL"] = base_url

    settings_path.parent.mkdir(parents=True, exist_ok=True)
    settings_path.write_text(json.dumps(settings, indent=2))

    click.echo(f"Initialized {PROG}!")
    click.echo(f"  - Set ANTHROPIC_BASE_URL={base_url} in {settings_path}")
    profiles_path = config_path()
    if profiles_path.exists():
        click.echo(f"  - Kept existing profile config at {profiles_path}")
    else:
        ProfileConfig.default().save(profiles_path)
        click.echo(f"  - Created default profile config at {profiles_path}")
    click.echo()
    click.echo("Next steps:")
    click.echo(f"  1. {PROG} setup <provider> --api-key <key>")
    click.echo(f"  2. {PROG} start")
    click.echo(f"  3. {PROG} use <provider>")


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
