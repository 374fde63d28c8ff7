#!/usr/bin/env python3
"""
CLI for enabling SSH/Telnet on Xiaomi/Redmi routers.

Usage:
    python -m shellenabler.cli models
    python -m shellenabler.cli calc-password 12345/E0QM98765
    python -m shellenabler.cli status --host 192.168.31.1 --password PASS
    python -m shellenabler.cli enable --host 192.168.31.1 --password PASS --sn 12345/E0QM98765
    python -m shellenabler.cli disable --host 192.168.31.1 --password PASS
    python -m shellenabler.cli exec "cat /etc/passwd" --host 192.168.31.1 --password PASS
"""

import argparse
import asyncio
import logging
import logging.handlers
import os
import sys
from pathlib import Path
from typing import Optional

import yaml
from rich.console import Console
from rich.table import Table
from rich.logging import RichHandler
from rich.progress import Progress, SpinnerColumn, TextColumn

from . import __version__
from .config import Config, load_config
from .errors import RouterError
from .password import calculate_ssh_password, require_ssh_password
from .router_manager import RouterManager
from .routers.base import Capability

console = Console()

DEFAULT_CONFIG_FILE = "config.yaml"


def setup_logging(verbose: bool = False, level: str = "INFO", log_file: Optional[str] = None):
    """Setup logging with rich handler."""
    level = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    handlers = [RichHandler(console=console, show_time=False, show_path=False)]

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
        ))

    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=handlers,
        force=True,
    )


def resolve_config(args) -> Config:
    """Build the effective config: file (if any) overridden by command-line flags."""
    config_path = getattr(args, "config", None)
    if config_path:
        config = load_config(config_path)
    elif Path(DEFAULT_CONFIG_FILE).exists():
        config = load_config(DEFAULT_CONFIG_FILE)
    else:
        config = Config()

    if getattr(args, "host", None):
        config.router.host = args.host
    if getattr(args, "model", None):
        config.router.model = args.model
    if getattr(args, "password", None):
        config.router.password = args.password
    if not config.router.password:
        config.router.password = os.getenv("ROUTER_PASSWORD", "")
    return config


async def connect(manager: RouterManager, config: Config):
    console.print(f"[bold]Logging in to {config.router.host} ({config.router.model})...[/bold]")
    return await manager.connect(config.router.host, config.router.password, config.router.model)


async def cmd_models(args, config: Config):
    """List supported router models."""
    table = Table(title="Supported router models")
    table.add_column("Model", style="cyan")
    for model in RouterManager().get_supported_models():
        table.add_row(model)
    console.print(table)


async def cmd_calc_password(args, config: Config):
    """Derive the default SSH password from a serial number."""
    password = require_ssh_password(args.sn)
    console.print(f"Serial number: [cyan]{args.sn}[/cyan]")
    console.print(f"SSH password:  [bold green]{password}[/bold green]")


async def cmd_status(args, config: Config):
    """Check SSH and Telnet state."""
    async with RouterManager(config) as manager:
        client = await connect(manager, config)
        client.require(Capability.CHECK_SHELL_STATUS)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            progress.add_task("Checking SSH and Telnet...", total=None)
            overall, report = await client.check_shell_status()

    if overall:
        console.print("[green]Shell access: enabled and reachable[/green]")
    else:
        console.print("[yellow]Shell access: not fully enabled or not reachable[/yellow]")
    console.print()
    console.print(report)


async def cmd_exec(args, config: Config):
    """Run one shell command on the router."""
    async with RouterManager(config) as manager:
        client = await connect(manager, config)
        client.require(Capability.EXECUTE_CUSTOM_COMMAND)
        await client.execute_custom_command(args.shell_command)
    console.print("[green]Command sent[/green]")


async def _print_step(step: str, success: bool, detail: Optional[str]):
    mark = "[green]✓[/green]" if success else "[red]✗[/red]"
    console.print(f"  {mark} {step}" + (f" [dim]({detail})[/dim]" if detail else ""))


async def cmd_enable(args, config: Config):
    """Enable SSH and Telnet."""
    async with RouterManager(config) as manager:
        client = await connect(manager, config)
        client.require(Capability.ENABLE_SSH)
        result = await client.enable_ssh(on_progress=_print_step)
        ssh_command = client.get_ssh_command()
        telnet_command = client.get_telnet_command()

    console.print()
    console.print(result.report)
    if result.verified is None:
        console.print("[yellow]Steps completed; verification inconclusive[/yellow]")
    elif not result.verified:
        console.print("[yellow]Steps completed, but SSH/Telnet do not look enabled yet[/yellow]")
    else:
        console.print("[bold green]SSH and Telnet enabled[/bold green]")

    ssh_password = calculate_ssh_password(args.sn) if args.sn else ""
    if ssh_password:
        table = Table(title="Login")
        table.add_column("Property", style="cyan")
        table.add_column("Value", style="green")
        table.add_row("Username", "root")
        table.add_row("Password", ssh_password)
        table.add_row("SSH", ssh_command)
        table.add_row("Telnet", telnet_command)
        console.print(table)
    else:
        console.print("[dim]Tip: pass --sn SERIAL to derive the root password "
                      "(or run: shell-enabler calc-password SERIAL)[/dim]")


async def cmd_disable(args, config: Config):
    """Disable SSH and Telnet."""
    async with RouterManager(config) as manager:
        client = await connect(manager, config)
        client.require(Capability.DISABLE_SSH)
        result = await client.disable_ssh(on_progress=_print_step)

    console.print()
    console.print(result.report)
    if result.verified is None:
        console.print("[yellow]Steps completed; verification inconclusive[/yellow]")
    elif not result.verified:
        console.print("[yellow]Steps completed, but a shell is still reachable[/yellow]")
    else:
        console.print("[bold green]SSH and Telnet disabled[/bold green]")


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="shell-enabler",
        description="Xiaomi/Redmi Router Shell Enabler",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("-c", "--config", help=f"Configuration file (default: {DEFAULT_CONFIG_FILE} if present)")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    subparsers.add_parser("models", help="List supported router models")

    calc_parser = subparsers.add_parser("calc-password", help="Derive SSH password from serial number")
    calc_parser.add_argument("sn", help="Router serial number (e.g. 12345/E0QM98765)")

    # Common router arguments
    def add_router_args(p):
        p.add_argument("--host", "-H", help="Router address (default: 192.168.31.1)")
        p.add_argument("--password", "-p", help="Admin password (or $ROUTER_PASSWORD)")
        p.add_argument("--model", "-m", help="Router model (default: redmi_ax5400pro)")

    status_parser = subparsers.add_parser("status", help="Check SSH and Telnet state")
    add_router_args(status_parser)

    exec_parser = subparsers.add_parser("exec", help="Run a shell command on the router")
    add_router_args(exec_parser)
    exec_parser.add_argument("shell_command", help="Command to run")

    enable_parser = subparsers.add_parser("enable", help="Enable SSH and Telnet")
    add_router_args(enable_parser)
    enable_parser.add_argument("--sn", help="Serial number, to show the root password afterwards")

    disable_parser = subparsers.add_parser("disable", help="Disable SSH and Telnet")
    add_router_args(disable_parser)

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        config = resolve_config(args)
    except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
        console.print(f"[red]Failed to load configuration: {e}[/red]")
        sys.exit(1)

    setup_logging(args.verbose, config.logging.level, config.logging.file)

    commands = {
        "models": cmd_models,
        "calc-password": cmd_calc_password,
        "status": cmd_status,
        "exec": cmd_exec,
        "enable": cmd_enable,
        "disable": cmd_disable,
    }

    try:
        asyncio.run(commands[args.command](args, config))
    except KeyboardInterrupt:
        console.print("\n[dim]Interrupted[/dim]")
        sys.exit(130)
    except RouterError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(1)
    except Exception as e:
        console.print(f"[red]Error: {e}[/red]")
        if args.verbose:
            console.print_exception()
        sys.exit(1)


if __name__ == "__main__":
    main()
