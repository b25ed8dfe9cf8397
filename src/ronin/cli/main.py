"""
Main CLI entry point for Ronin.

Provides the command-line interface using Click.
"""

import asyncio as _asyncio
import datetime as _datetime
import json as _json
import logging as _logging
import typing as _typing

import click as _click
import rich.console as _rich_console
import rich.logging as _rich_logging
import rich.markup as _rich_markup
import rich.prompt as _rich_prompt

import ronin
import ronin.api.base as api_base
import ronin.api.factory as api_factory
import ronin.config as config
import ronin.core.approval as approval
import ronin.core.conversation as core_conversation
import ronin.core.orchestrator as orchestrator
import ronin.hosts.base as hosts_base
import ronin.hosts.config as host_config
import ronin.hosts.manager as hosts_manager
import ronin.permissions.store as permissions_store

CONTEXT_SETTINGS: dict[str, _typing.Any] = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 100,
}


def _run_async(coro: _typing.Coroutine[_typing.Any, _typing.Any, _typing.Any]) -> _typing.Any:
    """Run an async coroutine synchronously."""
    return _asyncio.run(coro)


def _configure_logging(verbose: bool) -> None:
    level = _logging.DEBUG if verbose else _logging.WARNING
    _logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[
            _rich_logging.RichHandler(
                console=_rich_console.Console(stderr=True),
                show_path=verbose,
            )
        ],
        force=True,
    )


def _open_store(settings: config.Settings) -> permissions_store.PermissionStore:
    return permissions_store.PermissionStore(
        settings.permission_file,
        ttl=_datetime.timedelta(hours=settings.permissions.ttl_hours),
    )


def _create_manager(settings: config.Settings) -> hosts_manager.ToolHostManager:
    return hosts_manager.ToolHostManager(host_config.file_loader(settings.hosts_file))


class ConsoleApprover(approval.ApprovalCollaborator):
    """Asks on the terminal: yes, always (remember), or no."""

    def __init__(self, console: _rich_console.Console) -> None:
        self._console = console

    async def ask_approval(self, request: approval.ApprovalRequest) -> approval.ApprovalDecision:
        self._console.print()
        name = _rich_markup.escape(request.tool_name)
        self._console.print(f"[yellow]Tool call:[/yellow] [bold]{name}[/bold]")
        self._console.print_json(_json.dumps(request.tool_input, default=str))
        # Blocking read; keep the event loop free for host reader tasks
        answer = await _asyncio.to_thread(
            _rich_prompt.Prompt.ask,
            "Allow? [y]es / [a]lways / [n]o",
            choices=["y", "a", "n"],
            default="n",
            console=self._console,
            show_choices=False,
        )
        if answer == "a":
            return approval.ApprovalDecision.allow(remember=True)
        if answer == "y":
            return approval.ApprovalDecision.allow()
        return approval.ApprovalDecision.deny()


@_click.group(context_settings=CONTEXT_SETTINGS)
@_click.version_option(ronin.__version__, "-V", "--version", prog_name="ronin")
@_click.option("-v", "--verbose", is_flag=True, help="Log protocol and host activity")
@_click.pass_context
def cli(ctx: _click.Context, verbose: bool) -> None:
    """
    Ronin - streaming, tool-augmented conversations.

    \b
    Examples:
        ronin ask "list the files here"     # One turn with tools
        ronin hosts list                     # Show configured tool hosts
        ronin permissions show               # Show remembered approvals
    """
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    if "settings" not in ctx.obj:
        ctx.obj["settings"] = config.Settings()


# =============================================================================
# ask
# =============================================================================


@cli.command()
@_click.argument("message")
@_click.option("--provider", type=_click.Choice(sorted(api_factory.BUILTIN_PROVIDER_TYPES)),
               default=None, help="LLM provider to use")
@_click.option("--model", type=str, default=None, help="Model to use")
@_click.option("--system", type=str, default=None, help="System prompt")
@_click.option("--yes", "auto_approve", is_flag=True, help="Run every tool call without asking")
@_click.option("--deny", "auto_deny", is_flag=True, help="Decline every tool call without asking")
@_click.pass_context
def ask(
    ctx: _click.Context,
    message: str,
    provider: str | None,
    model: str | None,
    system: str | None,
    auto_approve: bool,
    auto_deny: bool,
) -> None:
    """Send MESSAGE and run the conversation until the model stops calling tools."""
    if auto_approve and auto_deny:
        raise _click.UsageError("--yes and --deny are mutually exclusive")

    settings: config.Settings = ctx.obj["settings"]
    console = _rich_console.Console()

    try:
        llm = api_factory.create_provider(provider, model, settings=settings)
    except ValueError as e:
        _click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    approver: approval.ApprovalCollaborator
    if auto_deny:
        approver = approval.AutoDenyApprover()
    else:
        approver = ConsoleApprover(console)

    exit_code = _run_async(_ask(
        settings,
        llm,
        approver,
        console,
        message,
        system=system or settings.behavior.system_prompt,
        auto_approve=auto_approve or settings.dangerously_skip_permissions,
    ))
    ctx.exit(exit_code)


async def _ask(
    settings: config.Settings,
    llm: api_base.LLMProvider,
    approver: approval.ApprovalCollaborator,
    console: _rich_console.Console,
    message: str,
    *,
    system: str | None,
    auto_approve: bool,
) -> int:
    manager = _create_manager(settings)
    try:
        reload = await manager.initialize()
    except host_config.HostConfigError as e:
        console.print(f"[red]Error:[/red] {_rich_markup.escape(str(e))}")
        await llm.close()
        return 1

    for outcome in reload.failed:
        error = _rich_markup.escape(outcome.error or "")
        console.print(f"[yellow]Host {outcome.host_id} unavailable:[/yellow] {error}")

    engine = orchestrator.ToolCallOrchestrator(
        llm,
        manager,
        _open_store(settings),
        approver,
        max_tool_rounds=settings.behavior.max_tool_rounds,
        auto_approve=auto_approve,
        validate_turns=settings.behavior.validate_turns,
        system=system,
        max_tokens=settings.provider.max_tokens,
    )

    try:
        async for output in engine.run_turn(core_conversation.Conversation(), message):
            _render(console, output)
    except api_base.TransportError as e:
        console.print()
        console.print(f"[red]Error:[/red] {_rich_markup.escape(str(e))}")
        return 1
    finally:
        await manager.shutdown()
        await llm.close()

    console.print()
    return 0


def _render(console: _rich_console.Console, output: orchestrator.TurnOutput) -> None:
    if output.kind == "text":
        console.print(output.text, end="", markup=False, highlight=False, soft_wrap=True)
    elif output.kind == "tool_call":
        console.print()
        console.print(f"[dim]> {output.tool_name}[/dim]")
    elif output.kind == "tool_result":
        style = "red" if output.result is not None and output.result.is_error else "green"
        summary = _rich_markup.escape(output.summary or "")
        console.print(f"[{style}]  {summary}[/{style}]", highlight=False)
    elif output.kind == "notice":
        console.print()
        console.print(f"[yellow]{_rich_markup.escape(output.text or '')}[/yellow]")


# =============================================================================
# hosts
# =============================================================================


@cli.group()
def hosts_cmd() -> None:
    """Tool host commands."""
    pass


cli.add_command(hosts_cmd, name="hosts")


@hosts_cmd.command(name="list")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def hosts_list(ctx: _click.Context, json_output: bool) -> None:
    """Connect every configured host and show its status."""
    settings: config.Settings = ctx.obj["settings"]

    async def collect() -> list[dict[str, _typing.Any]]:
        manager = _create_manager(settings)
        try:
            await manager.initialize()
            return [c.to_dict() for c in manager.all_host_info()]
        finally:
            await manager.shutdown()

    try:
        info = _run_async(collect())
    except host_config.HostConfigError as e:
        _click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    if json_output:
        _click.echo(_json.dumps(info, indent=2))
        return

    if not info:
        _click.echo("No tool hosts configured.")
        return
    for host in info:
        mark = {"connected": "✓", "disabled": "-", "failed": "✗"}[host["status"]]
        _click.echo(f"  {mark} {host['host_id']} ({host['transport']}): {host['status']}")
        if host["tool_names"]:
            _click.echo(f"      Tools: {', '.join(host['tool_names'])}")
        if host["last_error"]:
            _click.echo(f"      Error: {host['last_error']}")


@hosts_cmd.command(name="test")
@_click.argument("host_id")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def hosts_test(ctx: _click.Context, host_id: str, json_output: bool) -> None:
    """Connect HOST_ID once, list its tools, and disconnect."""
    settings: config.Settings = ctx.obj["settings"]

    try:
        configs = host_config.load_hosts_file(settings.hosts_file)
    except host_config.HostConfigError as e:
        _click.echo(f"Error: {e}", err=True)
        ctx.exit(1)

    if host_id not in configs:
        _click.echo(f"Error: {hosts_base.HostNotFoundError(host_id)}", err=True)
        ctx.exit(1)

    manager = _create_manager(settings)
    result = _run_async(manager.test_connection(host_id, configs[host_id]))

    if json_output:
        _click.echo(_json.dumps(result, indent=2))
    elif result["success"]:
        _click.echo(f"✓ {host_id}: {result['tool_count']} tools")
        for name in result["tools"]:
            _click.echo(f"    {name}")
    else:
        _click.echo(f"✗ {host_id}: {result['error']}")

    if not result["success"]:
        ctx.exit(1)


# =============================================================================
# permissions
# =============================================================================


@cli.group()
def permissions_cmd() -> None:
    """Remembered tool approvals."""
    pass


cli.add_command(permissions_cmd, name="permissions")


@permissions_cmd.command(name="show")
@_click.option("--json", "json_output", is_flag=True, help="JSON output")
@_click.pass_context
def permissions_show(ctx: _click.Context, json_output: bool) -> None:
    """Show remembered approvals."""
    store = _open_store(ctx.obj["settings"])
    records = store.records()
    stats = store.stats()

    if json_output:
        _click.echo(_json.dumps({
            "stats": stats.to_dict(),
            "approvals": [{"key": r.key, **r.to_dict()} for r in records],
        }, indent=2))
        return

    _click.echo(f"Permission file: {store.path}")
    _click.echo(f"Always ask: {'on' if stats.always_ask else 'off'}")
    if not records:
        _click.echo("No remembered approvals.")
        return
    _click.echo(f"Remembered approvals ({len(records)}):")
    for record in records:
        _click.echo(f"  {record.tool_name}: {record.summary} "
                    f"({record.created_at.isoformat(timespec='seconds')})")


@permissions_cmd.command(name="clear")
@_click.pass_context
def permissions_clear(ctx: _click.Context) -> None:
    """Forget every remembered approval."""
    store = _open_store(ctx.obj["settings"])
    count = len(store.records())
    store.clear()
    _click.echo(f"Cleared {count} approvals.")


@permissions_cmd.command(name="always-ask")
@_click.argument("state", type=_click.Choice(["on", "off"]))
@_click.pass_context
def permissions_always_ask(ctx: _click.Context, state: str) -> None:
    """Turn always-ask on (ignore remembered approvals) or off."""
    store = _open_store(ctx.obj["settings"])
    store.set_always_ask(state == "on")
    _click.echo(f"Always ask: {state}")


def main() -> None:
    """Main entry point with correct program name."""
    cli(prog_name="ronin")


if __name__ == "__main__":
    main()
