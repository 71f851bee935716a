"""Rich-based CLI interface for openleak.

This module provides the command-line entry points that configure OpenClaw
to use the free OpenLeak Claude proxy: obtain a key, patch openclaw.json and
optionally verify the key with a live request.
"""

import math
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from openleak import __version__
from openleak.config import PRIMARY_MODEL, SetupSettings, apply_provider_patch
from openleak.keys import (
    ApiKey,
    KeyUnavailableError,
    RateLimitError,
    default_key_sources,
    resolve_api_key,
)
from openleak.logging import get_logger, setup_logging
from openleak.verify import verify_key

console = Console()
err_console = Console(stderr=True)
logger = get_logger(__name__)

KEY_PAGE_URL = "https://openleak.fun/like"


def print_info(settings: SetupSettings) -> None:
    """Print resolved paths and URLs without touching disk or network."""
    console.print("[bold cyan]OpenLeak Setup - Configuration Info[/bold cyan]")
    console.print(f"  openclaw.json  : {escape(str(settings.config_path))}", soft_wrap=True)
    console.print(f"  Anthropic URL  : {escape(settings.anthropic_base_url)}", soft_wrap=True)
    console.print(f"  OpenAI URL     : {escape(settings.openai_base_url)}", soft_wrap=True)
    console.print(f"  Primary model  : {PRIMARY_MODEL}")
    console.print(f"  Key variable   : {escape(settings.env_var)}")


def print_key_instructions(settings: SetupSettings) -> None:
    """Explain how to get a key by hand and pass it in."""
    env_var = escape(settings.env_var)
    err_console.print(Panel.fit(
        f"1. Open [cyan]{KEY_PAGE_URL}[/cyan] in your browser\n"
        "2. Click [bold]Generate API Key[/bold] on the page\n"
        "3. Copy the key (looks like sk-cl-xxxxxxxxxxxxxxxxxxxx)\n"
        "   You get 6 free keys per day\n"
        "4. Re-run with your key:\n"
        "\n"
        "   Windows (PowerShell):\n"
        f"     $env:{env_var}=\"sk-cl-xxx\"; openleak\n"
        "\n"
        "   Linux/macOS:\n"
        f"     {env_var}=sk-cl-xxx openleak",
        title="How to get your free OpenLeak API key",
        border_style="yellow",
    ))


def print_rate_limit_help(error: RateLimitError, settings: SetupSettings) -> None:
    """Explain the daily quota and the manual alternative."""
    err_console.print("[red]✗ Daily key limit reached on OpenLeak[/red]")

    seconds = error.seconds_until_reset()
    if seconds is not None:
        minutes = max(1, math.ceil(seconds / 60))
        if minutes >= 60:
            err_console.print(f"  Quota resets in about {minutes // 60}h {minutes % 60}m")
        else:
            err_console.print(f"  Quota resets in about {minutes} minute(s)")

    err_console.print("  Alternatively, generate a key in the browser and pass it in:")
    print_key_instructions(settings)


def report_key(api_key: ApiKey, settings: SetupSettings) -> None:
    if api_key.source == "generated":
        console.print(f"[green]✓ Generated a new key: {escape(api_key.masked)}[/green]")
        if api_key.remaining is not None:
            console.print(f"  Keys remaining today: {api_key.remaining}")
    else:
        console.print(f"Using key from {escape(settings.env_var)}: {escape(api_key.masked)}")

    if not api_key.has_expected_format:
        console.print("[yellow]⚠ Key doesn't start with 'sk-cl-'. Proceeding anyway, but double-check it.[/yellow]")
        console.print("  Expected format: sk-cl-xxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxxx")


def run_setup(settings: SetupSettings, generate: bool = True, verify: bool = True) -> bool:
    """Obtain a key, patch openclaw.json and optionally verify.

    Args:
        settings: Settings for this run
        generate: Allow requesting a key from the issuance endpoint
        verify: Send a live test request after writing the config

    Returns:
        Verification result (False when verification was skipped)

    Raises:
        KeyUnavailableError: No key in the environment and generation disabled
        RateLimitError: Issuance endpoint refused with HTTP 429
        Exception: Anything else, handled by the caller
    """
    api_key = resolve_api_key(default_key_sources(settings, generate=generate))
    report_key(api_key, settings)

    console.print(f"\nPatching: {escape(str(settings.config_path))}", soft_wrap=True)
    apply_provider_patch(api_key.value, settings)
    console.print("[green]✓ openclaw.json updated successfully[/green]")

    verified = False
    if verify:
        with console.status("Verifying key with a live test request..."):
            verified = verify_key(api_key.value, settings)
        if verified:
            console.print("[green]✓ Key verified - proxy is working![/green]")
        else:
            console.print("[yellow]⚠ Could not verify the key. It may still work, check manually if needed.[/yellow]")

    console.print("\n[bold green]Done! OpenClaw is now configured to use OpenLeak as its AI provider.[/bold green]")
    console.print(f"  Key     : {escape(api_key.masked)}")
    console.print(f"  Model   : {PRIMARY_MODEL}")
    console.print(f"  Base URL: {escape(settings.anthropic_base_url)}", soft_wrap=True)
    console.print("\nRestart OpenClaw for changes to take effect:")
    console.print("  [cyan]openclaw restart[/cyan]")

    return verified


def execute(settings: SetupSettings, generate: bool, verify: bool, verbose: bool) -> None:
    """Run the setup under the single top-level error handler.

    This is the only place a failing exit code is set.
    """
    setup_logging(verbose=verbose)
    logger.debug(f"Starting setup: config={settings.config_path}, base_url={settings.base_url}, "
                 f"generate={generate}, verify={verify}")

    try:
        run_setup(settings, generate=generate, verify=verify)
    except KeyUnavailableError:
        err_console.print(f"[red]✗ No {escape(settings.env_var)} environment variable found.[/red]")
        print_key_instructions(settings)
        sys.exit(1)
    except RateLimitError as e:
        print_rate_limit_help(e, settings)
        sys.exit(1)
    except KeyboardInterrupt:
        err_console.print("\n[yellow]Cancelled[/yellow]")
        sys.exit(1)
    except Exception as e:
        err_console.print(f"[red]✗ Fatal: {escape(str(e))}[/red]")
        logger.debug("Setup failed", exc_info=True)
        sys.exit(1)


def settings_options(func):
    """Options shared by every entry point."""
    func = click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging output")(func)
    func = click.option("--timeout", type=float, help="HTTP timeout in seconds (default: none)")(func)
    func = click.option("--base-url", type=str, help="OpenLeak base URL (env: OPENLEAK_BASE_URL)")(func)
    func = click.option("--config", "config_path", type=click.Path(dir_okay=False, path_type=Path),
                        help="Path to openclaw.json (env: OPENCLAW_CONFIG_PATH)")(func)
    func = click.option("--manual", is_flag=True,
                        help="Only use a key from OPENLEAK_API_KEY, never request one")(func)
    return func


@click.command()
@click.version_option(version=__version__, prog_name="openleak")
@click.option("--info", "info_only", is_flag=True, help="Print config paths and URLs, then exit")
@click.option("--apply-only", is_flag=True, help="Skip the live verification step (faster)")
@click.option("--no-verify", is_flag=True, help="Same as --apply-only")
@settings_options
def main(info_only, apply_only, no_verify, manual, config_path: Optional[Path], base_url, timeout, verbose):
    """openleak - Configure OpenClaw to use the free OpenLeak Claude proxy.

    Uses OPENLEAK_API_KEY when set, otherwise requests a new key.

    \b
    Examples:
      openleak                       Set up with a generated key
      OPENLEAK_API_KEY=sk-cl-xxx openleak
      openleak --apply-only          Skip the live test request
      openleak --info                Show paths and URLs
    """
    settings = SetupSettings.from_env(config_path=config_path, base_url=base_url, timeout=timeout)

    if info_only:
        print_info(settings)
        return

    execute(settings, generate=not manual, verify=not (apply_only or no_verify), verbose=verbose)


@click.command()
@click.version_option(version=__version__, prog_name="openleak-refresh")
@settings_options
def refresh(manual, config_path: Optional[Path], base_url, timeout, verbose):
    """Rotate the OpenLeak key without verification.

    Suitable for a daily cron job. Touches only the OpenLeak settings in
    openclaw.json.
    """
    settings = SetupSettings.from_env(config_path=config_path, base_url=base_url, timeout=timeout)
    execute(settings, generate=not manual, verify=False, verbose=verbose)


if __name__ == "__main__":
    main()
