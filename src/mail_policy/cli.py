# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Command-line interface for the mail submission policy engine.

Manages the users and addresses consulted by the policy stages, inspects the
sent mail archive, and signs or checks SRS addresses by hand.

Usage:
    mail-policy --db /data/policy.db users add alice --address alice@example.com --recipients 500
    mail-policy --db /data/policy.db users list
    mail-policy --db /data/policy.db users update alice --recipients 1000 --app-password s3cret
    mail-policy --db /data/policy.db addresses add alice.smith@example.com alice
    mail-policy --db /data/policy.db addresses list
    mail-policy --db /data/policy.db addresses remove alice.smith@example.com
    mail-policy --db /data/policy.db counters show alice
    mail-policy --db /data/policy.db counters purge
    mail-policy --config policy.ini srs rewrite bob@example.org
    mail-policy --config policy.ini srs reverse SRS0=HHHH=TT=example.org=bob@fwd.example.com
    mail-policy --db /data/policy.db archive list alice
    mail-policy --db /data/policy.db archive show 42 > message.eml
"""

from __future__ import annotations

import asyncio
import json
import sys
import time
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from .config_loader import load_policy_config
from .errors import SRSError
from .logger import configure_logging
from .policy_config import PolicyConfig
from .policy_db import PolicyDb
from .rate_limit import humanize_ttl
from .srs import Err, Ok, SRSRewriter

console = Console()
err_console = Console(stderr=True)


def run_async(coro):
    """Execute an async coroutine synchronously from CLI context."""
    return asyncio.run(coro)


def print_error(message: str) -> None:
    err_console.print(f"[red]Error:[/red] {message}")


def print_success(message: str) -> None:
    console.print(f"[green]✓[/green] {message}")


def print_json(data: Any) -> None:
    console.print_json(json.dumps(data, indent=2, default=str))


def _config(ctx: click.Context) -> PolicyConfig:
    return ctx.obj["config"]


def _db(ctx: click.Context) -> PolicyDb:
    return PolicyDb(_config(ctx).db_path)


async def _with_db(db: PolicyDb, operation):
    await db.init_db()
    try:
        return await operation(db)
    finally:
        await db.close()


@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False),
              envvar="MSA_CONFIG", help="INI configuration file.")
@click.option("--db", "db_path", help="SQLite database path (overrides the configuration).")
@click.option("--log-level", default=None, help="Logging level (default: MSA_LOG_LEVEL or INFO).")
@click.pass_context
def main(ctx: click.Context, config_path: str | None, db_path: str | None, log_level: str | None) -> None:
    """mail-policy: submission policy engine administration."""
    configure_logging(log_level)
    config = load_policy_config(config_path)
    if db_path:
        config.db_path = db_path
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


# ============================================================================
# USERS commands
# ============================================================================

@main.group("users")
def users() -> None:
    """Manage submission accounts."""


@users.command("add")
@click.argument("username")
@click.option("--address", "-a", required=True, help="Default sending address.")
@click.option("--password", "-p", prompt=True, hide_input=True, confirmation_prompt=True,
              help="Account password.")
@click.option("--app-password", help="Application password for SMTP submission (usable with 2FA).")
@click.option("--quota", type=int, default=0, show_default=True, help="Storage quota in bytes (0=unlimited).")
@click.option("--recipients", type=int, default=0, show_default=True,
              help="Recipients per window (0=unlimited).")
@click.option("--enable-2fa", "enabled_2fa", is_flag=True, help="Account is protected by 2FA.")
@click.pass_context
def users_add(
    ctx: click.Context,
    username: str,
    address: str,
    password: str,
    app_password: str | None,
    quota: int,
    recipients: int,
    enabled_2fa: bool,
) -> None:
    """Add a user and register its default address."""

    async def _add(db: PolicyDb) -> int | None:
        if await db.get_user(username):
            return None
        return await db.add_user(
            {
                "username": username,
                "address": address,
                "password": password,
                "app_password": app_password,
                "quota": quota,
                "recipients": recipients,
                "enabled_2fa": enabled_2fa,
            }
        )

    try:
        user_id = run_async(_with_db(_db(ctx), _add))
    except ValueError as exc:
        print_error(str(exc))
        sys.exit(1)

    if user_id is None:
        print_error(f"User '{username}' already exists.")
        sys.exit(1)
    print_success(f"User '{username}' created (id={user_id}).")


@users.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def users_list(ctx: click.Context, as_json: bool) -> None:
    """List all users."""
    user_list = run_async(_with_db(_db(ctx), lambda db: db.list_users()))

    if as_json:
        print_json(user_list)
        return

    if not user_list:
        console.print("[dim]No users found.[/dim]")
        return

    table = Table(title="Users")
    table.add_column("ID", style="cyan")
    table.add_column("Username")
    table.add_column("Address")
    table.add_column("Recipients", justify="right")
    table.add_column("Storage", justify="right")
    table.add_column("2FA", justify="center")

    for u in user_list:
        quota = u.get("quota") or 0
        storage = f"{u.get('storage_used') or 0}/{quota}" if quota else str(u.get("storage_used") or 0)
        table.add_row(
            str(u["id"]),
            u["username"],
            u["address"],
            str(u.get("recipients") or "∞"),
            storage,
            "[green]✓[/green]" if u.get("enabled_2fa") else "-",
        )

    console.print(table)


@users.command("update")
@click.argument("username")
@click.option("--address", "-a", help="New default sending address.")
@click.option("--password", "-p", help="New account password.")
@click.option("--app-password", help="New application password for SMTP submission.")
@click.option("--quota", type=int, help="Storage quota in bytes (0=unlimited).")
@click.option("--recipients", type=int, help="Recipients per window (0=unlimited).")
@click.option("--enable-2fa/--disable-2fa", "enabled_2fa", default=None, help="Toggle 2FA protection.")
@click.pass_context
def users_update(
    ctx: click.Context,
    username: str,
    address: str | None,
    password: str | None,
    app_password: str | None,
    quota: int | None,
    recipients: int | None,
    enabled_2fa: bool | None,
) -> None:
    """Change limits, credentials or flags of a user."""
    updates = {
        "address": address,
        "password": password,
        "app_password": app_password,
        "quota": quota,
        "recipients": recipients,
        "enabled_2fa": enabled_2fa,
    }
    updates = {k: v for k, v in updates.items() if v is not None}
    if not updates:
        print_error("Nothing to update.")
        sys.exit(1)

    async def _update(db: PolicyDb) -> bool | None:
        user = await db.get_user(username)
        if not user:
            return None
        if address:
            await db.add_address(address, user["id"])
        return await db.users.update_fields(user["id"], updates)

    try:
        changed = run_async(_with_db(_db(ctx), _update))
    except ValueError as exc:
        print_error(str(exc))
        sys.exit(1)

    if changed is None:
        print_error(f"User '{username}' not found.")
        sys.exit(1)
    print_success(f"User '{username}' updated.")


# ============================================================================
# ADDRESSES commands
# ============================================================================

@main.group("addresses")
def addresses() -> None:
    """Manage the local address directory."""


@addresses.command("add")
@click.argument("address")
@click.argument("username")
@click.pass_context
def addresses_add(ctx: click.Context, address: str, username: str) -> None:
    """Allow USERNAME to send as ADDRESS."""

    async def _add(db: PolicyDb) -> str | None:
        user = await db.get_user(username)
        if not user:
            return None
        return await db.add_address(address, user["id"])

    try:
        normalized = run_async(_with_db(_db(ctx), _add))
    except ValueError as exc:
        print_error(str(exc))
        sys.exit(1)

    if normalized is None:
        print_error(f"User '{username}' not found.")
        sys.exit(1)
    print_success(f"Address '{normalized}' assigned to '{username}'.")


@addresses.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def addresses_list(ctx: click.Context, as_json: bool) -> None:
    """List all registered addresses."""
    address_list = run_async(_with_db(_db(ctx), lambda db: db.list_addresses()))

    if as_json:
        print_json(address_list)
        return

    if not address_list:
        console.print("[dim]No addresses found.[/dim]")
        return

    table = Table(title="Addresses")
    table.add_column("Address", style="cyan")
    table.add_column("User")
    for a in address_list:
        table.add_row(a["address"], a["username"])
    console.print(table)


@addresses.command("remove")
@click.argument("address")
@click.pass_context
def addresses_remove(ctx: click.Context, address: str) -> None:
    """Remove ADDRESS from the directory."""
    removed = run_async(_with_db(_db(ctx), lambda db: db.addresses.remove(address)))
    if not removed:
        print_error(f"Address '{address}' not found.")
        sys.exit(1)
    print_success(f"Address '{address}' removed.")


# ============================================================================
# COUNTERS commands
# ============================================================================

@main.group("counters")
def counters() -> None:
    """Inspect and clean recipient rate counters."""


@counters.command("show")
@click.argument("username")
@click.pass_context
def counters_show(ctx: click.Context, username: str) -> None:
    """Show the current recipient window of USERNAME."""
    config = _config(ctx)
    now = int(time.time())

    async def _show(db: PolicyDb) -> tuple[dict[str, Any], dict[str, Any] | None] | None:
        user = await db.get_user(username)
        if not user:
            return None
        row = await db.counters.get(f"{config.limits.counter_prefix}{user['id']}", now)
        return user, row

    found = run_async(_with_db(_db(ctx), _show))
    if found is None:
        print_error(f"User '{username}' not found.")
        sys.exit(1)

    user, row = found
    allowed = user.get("recipients") or "∞"
    if row is None:
        console.print(f"{username}: 0/{allowed} recipients, no open window")
        return
    console.print(
        f"{username}: {row['value']}/{allowed} recipients, "
        f"window expires in {humanize_ttl(row['expires_at'] - now)}"
    )


@counters.command("purge")
@click.pass_context
def counters_purge(ctx: click.Context) -> None:
    """Delete expired counter rows."""
    now = int(time.time())
    purged = run_async(_with_db(_db(ctx), lambda db: db.counters.purge_expired(now)))
    print_success(f"Purged {purged} expired counter(s).")


# ============================================================================
# SRS commands
# ============================================================================

def _rewriter(config: PolicyConfig, secret: str | None) -> SRSRewriter:
    try:
        return SRSRewriter(secret or config.srs.secret or "", max_age=config.srs.max_age_days)
    except SRSError as exc:
        print_error(str(exc))
        sys.exit(1)


@main.group("srs")
def srs() -> None:
    """Sign and verify SRS addresses."""


@srs.command("rewrite")
@click.argument("address")
@click.option("--secret", help="SRS secret (default: from configuration).")
@click.option("--domain", help="Rewrite domain (default: from configuration).")
@click.pass_context
def srs_rewrite(ctx: click.Context, address: str, secret: str | None, domain: str | None) -> None:
    """Rewrite ADDRESS as the forwarder would."""
    config = _config(ctx)
    rewrite_domain = domain or config.srs.rewrite_domain
    if not rewrite_domain:
        print_error("No rewrite domain configured.")
        sys.exit(1)

    at = address.rfind("@")
    local, sender_domain = (address[:at], address[at + 1:].lower()) if at >= 0 else ("", address)

    match _rewriter(config, secret).rewrite(local, sender_domain):
        case Ok(value=alias):
            click.echo(f"{alias}@{rewrite_domain}")
        case Err(reason=reason):
            print_error(reason)
            sys.exit(1)


@srs.command("reverse")
@click.argument("alias")
@click.option("--secret", help="SRS secret (default: from configuration).")
@click.pass_context
def srs_reverse(ctx: click.Context, alias: str, secret: str | None) -> None:
    """Validate an SRS ALIAS and print the address it stands for."""
    try:
        local, domain = _rewriter(_config(ctx), secret).reverse(alias)
    except SRSError as exc:
        print_error(str(exc))
        sys.exit(1)
    click.echo(f"{local}@{domain}")


# ============================================================================
# ARCHIVE commands
# ============================================================================

@main.group("archive")
def archive() -> None:
    """Inspect the sent mail archive."""


@archive.command("list")
@click.argument("username")
@click.option("--limit", "-n", type=int, default=20, show_default=True, help="Maximum entries.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def archive_list(ctx: click.Context, username: str, limit: int, as_json: bool) -> None:
    """List the most recent archived messages of USERNAME."""

    async def _list(db: PolicyDb) -> list[dict[str, Any]] | None:
        user = await db.get_user(username)
        if not user:
            return None
        return await db.archive.list_for_user(user["id"], limit=limit)

    entries = run_async(_with_db(_db(ctx), _list))
    if entries is None:
        print_error(f"User '{username}' not found.")
        sys.exit(1)

    if as_json:
        print_json(entries)
        return

    if not entries:
        console.print("[dim]No archived messages.[/dim]")
        return

    table = Table(title=f"Sent mail of {username}")
    table.add_column("UID", style="cyan")
    table.add_column("Envelope")
    table.add_column("From")
    table.add_column("To")
    table.add_column("Size", justify="right")
    table.add_column("Stored")
    for e in entries:
        meta = e.get("meta") or {}
        table.add_row(
            str(e["id"]),
            e.get("envelope_id") or "-",
            meta.get("from") or "-",
            ", ".join(meta.get("to") or []) or "-",
            str(e.get("size") or 0),
            str(e.get("created_at") or "-"),
        )
    console.print(table)


@archive.command("show")
@click.argument("uid", type=int)
@click.pass_context
def archive_show(ctx: click.Context, uid: int) -> None:
    """Write the raw archived message UID to stdout."""
    raw = run_async(_with_db(_db(ctx), lambda db: db.archive.get_raw(uid)))
    if raw is None:
        print_error(f"Archived message {uid} not found.")
        sys.exit(1)
    click.echo(raw, nl=False)


if __name__ == "__main__":
    main()
