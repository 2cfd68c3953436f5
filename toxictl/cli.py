"""Command line interface for managing proxies and toxics on a Toxiproxy server."""

from __future__ import annotations

import argparse
import os
import platform
import sys
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Mapping, TextIO

from toxictl.client import Client
from toxictl.errors import ClientError
from toxictl.toxic import Toxic, ToxicOptions

RED = "\x1b[31m"
GREEN = "\x1b[32m"
YELLOW = "\x1b[33m"
BLUE = "\x1b[34m"
PURPLE = "\x1b[35m"
NONE = "\x1b[0m"

VERSION = "git"
DEFAULT_HOST = "http://localhost:8474"

TOXIC_DESCRIPTION = """
  Default Toxics:
  latency:    delay all data +/- jitter
              latency=<ms>,jitter=<ms>

  bandwidth:  limit to max kb/s
              rate=<KB/s>

  slow_close: delay from closing
              delay=<ms>

  timeout:    stop all data and close after timeout
              timeout=<ms>

  reset_peer: simulate TCP RESET (Connection reset by peer) on the connections by closing
              the stub Input immediately or after a timeout
              timeout=<ms>

  slicer:     slice data into bits with optional delay
              average_size=<bytes>,size_variation=<bytes>,delay=<microseconds>

  toxic add:
    usage: toxiproxy-cli toxic add --type <toxicType> [--downstream|--upstream] \\
            --toxicName <toxicName> [--toxicity <float>] \\
            --attribute <key=value> [--attribute <key2=value2>] <proxyName>


    example: toxiproxy-cli toxic add -t latency -n myToxic -a latency=100 -a jitter=50 myProxy

  toxic update:
    usage: toxiproxy-cli toxic update --toxicName <toxicName> [--toxicity <float>] \\
            --attribute <key1=value1> [--attribute <key2=value2>] <proxyName>

    example: toxiproxy-cli toxic update -n myToxic -a jitter=25 myProxy

  toxic delete:
    usage: toxiproxy-cli toxic delete --toxicName <toxicName> <proxyName>

    example: toxiproxy-cli toxic delete -n myToxic myProxy
"""


class CommandError(Exception):
    """A command failed; the message is shown to the user."""

    def __init__(self, message: str, exit_code: int = 1) -> None:
        super().__init__(message)
        self.message = message
        self.exit_code = exit_code


@dataclass
class _Session:
    client: Client
    is_tty: bool
    out: TextIO

    def color(self, code: str) -> str:
        return code if self.is_tty else ""

    def color_enabled(self, enabled: bool) -> str:
        return self.color(GREEN if enabled else RED)

    def write(self, text: str) -> None:
        self.out.write(text)

    def hint(self, message: str) -> None:
        if self.is_tty:
            self.write(f"\n{self.color(NONE)}Hint: {message}\n")


def parse_attributes(values: Iterable[str] | None) -> dict[str, Any]:
    """Turn key=value strings into attributes, reading numbers as floats."""
    parsed: dict[str, Any] = {}
    for raw in values or []:
        key, sep, value = raw.partition("=")
        if not sep:
            continue
        number = _parse_float(value)
        parsed[key] = value if number is None else number
    return parsed


def _parse_float(text: str) -> float | None:
    if not text or text != text.strip() or "_" in text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def parse_toxicity(value: str | None, default: float) -> float:
    """Read a toxicity between 0 and 1, falling back to the default when empty."""
    if not value:
        return default
    toxicity = _parse_float(value)
    if toxicity is None or toxicity > 1 or toxicity < 0:
        raise CommandError("toxicity should be a float between 0 and 1.")
    return toxicity


def enabled_text(enabled: bool) -> str:
    """Return the word describing an enabled flag."""
    return "enabled" if enabled else "disabled"


def sorted_attributes(attributes: Mapping[str, Any] | None) -> list[tuple[str, Any]]:
    """Return attribute pairs ordered by key."""
    return sorted((attributes or {}).items(), key=lambda item: item[0])


def format_width(color: str, text: str, num_tabs: int, is_tty: bool) -> str:
    """Return a table cell: text followed by tabs that pad it on a terminal."""
    if is_tty:
        num_tabs = max(num_tabs - (len(text) // 8 + 1), 0)
        return f"{color}{text}{NONE}\t" + "\t" * num_tabs
    return f"{text}\t"


def _format_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if value.is_integer() and abs(value) < 1e21:
            return str(int(value))
        return repr(value)
    if value is None:
        return "<nil>"
    return str(value)


def _first_arg(args: argparse.Namespace) -> str:
    return args.args[0] if args.args else ""


def _show_help(args: argparse.Namespace, session: _Session) -> None:
    session.write(args.command_parser.format_help())


def _require_proxy_name(args: argparse.Namespace, session: _Session, message: str) -> str:
    name = _first_arg(args)
    if not name:
        _show_help(args, session)
        raise CommandError(message)
    return name


def _arg_or_fail(args: argparse.Namespace, session: _Session, name: str) -> str:
    value = getattr(args, name, None) or ""
    if not value:
        _show_help(args, session)
        raise CommandError(f"Required argument '{name}' was empty.")
    return value


def _attribute_values(args: argparse.Namespace) -> list[str]:
    values: list[str] = []
    for raw in args.attribute or []:
        values.extend(raw.split(","))
    return values


def _fetch_proxy(session: _Session, name: str):
    try:
        return session.client.proxy(name)
    except ClientError as exc:
        raise CommandError(f"Failed to retrieve proxy {name}: {exc}") from exc


def _cmd_list(args: argparse.Namespace, session: _Session) -> None:
    try:
        proxies = session.client.proxies()
    except ClientError as exc:
        raise CommandError(f"Failed to retrieve proxies: {exc}") from exc

    names = sorted(proxies)
    c = session.color
    if session.is_tty:
        session.write(
            f"{c(GREEN)}Name\t\t\t{c(BLUE)}Listen\t\t{c(YELLOW)}Upstream\t\t"
            f"{c(PURPLE)}Enabled\t\t{c(RED)}Toxics\n{c(NONE)}"
        )
        session.write(f"{c(NONE)}{'=' * 86}\n")
        if not names:
            session.write(f"{c(RED)}no proxies\n{c(NONE)}")
            session.hint("create a proxy with `toxiproxy-cli create`")
            return

    for name in names:
        proxy = proxies[name]
        num_toxics = str(len(proxy.active_toxics))
        if num_toxics == "0" and session.is_tty:
            num_toxics = "None"
        session.write(
            format_width(session.color_enabled(proxy.enabled), proxy.name, 3, session.is_tty)
            + format_width(BLUE, proxy.listen, 2, session.is_tty)
            + format_width(YELLOW, proxy.upstream, 3, session.is_tty)
            + format_width(PURPLE, enabled_text(proxy.enabled), 2, session.is_tty)
            + f"{c(RED)}{num_toxics}{c(NONE)}\n"
        )
    session.hint("inspect toxics with `toxiproxy-cli inspect <proxyName>`")


def _list_toxics(session: _Session, toxics: list[Toxic], stream: str) -> None:
    c = session.color
    if session.is_tty:
        session.write(f"{c(GREEN)}{stream} toxics:\n{c(NONE)}")
        if not toxics:
            session.write(f"{c(RED)}Proxy has no {stream} toxics enabled.\n{c(NONE)}")
            return
    for toxic in toxics:
        if session.is_tty:
            line = f"{c(BLUE)}{toxic.name}:{c(NONE)}\t"
        else:
            line = f"{toxic.name}\t"
        line += f"type={toxic.type}\tstream={toxic.stream}\ttoxicity={toxic.toxicity:.2f}\t"
        line += "attributes=["
        for key, value in sorted_attributes(toxic.attributes):
            line += f"\t{key}={_format_value(value)}"
        line += "\t]\n"
        session.write(line)


def _cmd_inspect(args: argparse.Namespace, session: _Session) -> None:
    name = _require_proxy_name(args, session, "Proxy name is required as the first argument.")
    proxy = _fetch_proxy(session, name)

    if not session.is_tty:
        _list_toxics(session, proxy.active_toxics, "")
        return

    c = session.color
    session.write(f"{c(PURPLE)}Name: {c(NONE)}{proxy.name}\t")
    session.write(f"{c(BLUE)}Listen: {c(NONE)}{proxy.listen}\t")
    session.write(f"{c(YELLOW)}Upstream: {c(NONE)}{proxy.upstream}\n")
    session.write(f"{c(NONE)}{'=' * 70}\n")

    if not proxy.active_toxics:
        session.write(f"{c(RED)}Proxy has no toxics enabled.\n{c(NONE)}")
    else:
        upstream = [t for t in proxy.active_toxics if t.stream == "upstream"]
        downstream = [t for t in proxy.active_toxics if t.stream != "upstream"]
        _list_toxics(session, upstream, "Upstream")
        session.write("\n")
        _list_toxics(session, downstream, "Downstream")

    session.hint("add a toxic with `toxiproxy-cli toxic add`")


def _cmd_toggle(args: argparse.Namespace, session: _Session) -> None:
    name = _require_proxy_name(args, session, "Proxy name is required as the first argument.")
    proxy = _fetch_proxy(session, name)
    proxy.enabled = not proxy.enabled
    try:
        proxy.save()
    except ClientError as exc:
        raise CommandError(f"Failed to toggle proxy {name}: {exc}") from exc
    color = session.color_enabled(proxy.enabled)
    none = session.color(NONE)
    session.write(
        f"Proxy {color}{name}{none} is now {color}{enabled_text(proxy.enabled)}{none}\n"
    )


def _cmd_create(args: argparse.Namespace, session: _Session) -> None:
    name = _require_proxy_name(args, session, "Proxy name is required as the first argument.")
    listen = _arg_or_fail(args, session, "listen")
    upstream = _arg_or_fail(args, session, "upstream")
    try:
        session.client.create_proxy(name, listen, upstream)
    except ClientError as exc:
        raise CommandError(f"Failed to create proxy: {exc}") from exc
    session.write(f"Created new proxy {name}\n")


def _cmd_delete(args: argparse.Namespace, session: _Session) -> None:
    name = _require_proxy_name(args, session, "Proxy name is required as the first argument.")
    proxy = _fetch_proxy(session, name)
    try:
        proxy.delete()
    except ClientError as exc:
        raise CommandError(f"Failed to delete proxy: {exc}") from exc
    session.write(f"Deleted proxy {name}\n")


def _common_options(args: argparse.Namespace, session: _Session) -> ToxicOptions:
    name = _require_proxy_name(args, session, "Proxy name is missing.")
    return ToxicOptions(proxy_name=name, toxic_name=args.toxicName or "")


def _cmd_toxic_add(args: argparse.Namespace, session: _Session) -> None:
    options = _common_options(args, session)
    options.toxic_type = _arg_or_fail(args, session, "type")
    if args.upstream and args.downstream:
        raise CommandError("Only one should be specified: upstream or downstream.")
    options.stream = "upstream" if args.upstream else "downstream"
    options.toxicity = parse_toxicity(args.toxicity, 1.0)
    options.attributes = parse_attributes(_attribute_values(args))

    try:
        toxic = session.client.add_toxic(options)
    except ClientError as exc:
        raise CommandError(f"Failed to add toxic: {exc}") from exc
    session.write(
        f"Added {toxic.stream} {toxic.type} toxic '{toxic.name}' "
        f"on proxy '{options.proxy_name}'\n"
    )


def _cmd_toxic_update(args: argparse.Namespace, session: _Session) -> None:
    options = _common_options(args, session)
    options.toxicity = parse_toxicity(args.toxicity, 1.0)
    options.attributes = parse_attributes(_attribute_values(args))
    try:
        toxic = session.client.update_toxic(options)
    except ClientError as exc:
        raise CommandError(f"Failed to update toxic: {exc}") from exc
    session.write(f"Updated toxic '{toxic.name}' on proxy '{options.proxy_name}'\n")


def _cmd_toxic_remove(args: argparse.Namespace, session: _Session) -> None:
    options = _common_options(args, session)
    try:
        session.client.remove_toxic(options)
    except ClientError as exc:
        raise CommandError(f"Failed to remove toxic: {exc}") from exc
    session.write(
        f"Removed toxic '{options.toxic_name}' on proxy '{options.proxy_name}'\n"
    )


_Handler = Callable[[argparse.Namespace, _Session], None]


def _command(
    group: Any,
    name: str,
    aliases: list[str],
    help_text: str,
    handler: _Handler | None,
    description: str | None = None,
) -> argparse.ArgumentParser:
    parser = group.add_parser(
        name,
        aliases=aliases,
        help=help_text,
        description=description or help_text,
        add_help=False,
        allow_abbrev=False,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--help", action="help", help="show help")
    parser.set_defaults(handler=handler or _show_help, command_parser=parser)
    return parser


def _with_args(parser: argparse.ArgumentParser, metavar: str = "<proxyName>") -> None:
    parser.add_argument("args", nargs="*", metavar=metavar)


def _toxic_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--toxicName", "-n", default="", help="name of the toxic")


def _toxicity_and_attributes(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--toxicity",
        "--tox",
        default="",
        help="toxicity of toxic should be a float between 0 and 1 (default: 1.0)",
    )
    parser.add_argument(
        "--attribute", "-a", action="append", help="toxic attribute in key=value format"
    )


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for every command."""
    parser = argparse.ArgumentParser(
        prog="toxiproxy-cli",
        description="Simulate network and system conditions",
        add_help=False,
        allow_abbrev=False,
    )
    parser.add_argument("--help", action="help", help="show help")
    parser.add_argument(
        "--host",
        "-h",
        default=os.environ.get("TOXIPROXY_URL", DEFAULT_HOST),
        help="toxiproxy host to connect to (env: TOXIPROXY_URL)",
    )
    parser.add_argument(
        "--version", "-v", action="version", version=f"toxiproxy-cli version {VERSION}"
    )
    commands = parser.add_subparsers(dest="command", metavar="<command>")

    _with_args(_command(commands, "list", ["l", "li", "ls"], "list all proxies", _cmd_list))
    _with_args(
        _command(commands, "inspect", ["i", "ins"], "inspect a single proxy", _cmd_inspect)
    )

    create = _command(commands, "create", ["c", "new"], "create a new proxy", _cmd_create)
    create.add_argument("--listen", "-l", default="", help="proxy will listen on this address")
    create.add_argument(
        "--upstream", "-u", default="", help="proxy will forward to this address"
    )
    _with_args(create)

    _with_args(
        _command(commands, "toggle", ["tog"], "toggle enabled status on a proxy", _cmd_toggle)
    )
    _with_args(_command(commands, "delete", ["d"], "delete a proxy", _cmd_delete))

    toxic = _command(
        commands,
        "toxic",
        ["t"],
        "add, remove or update a toxic",
        None,
        description=TOXIC_DESCRIPTION,
    )
    toxic_commands = toxic.add_subparsers(dest="toxic_command", metavar="<command>")

    add = _command(toxic_commands, "add", ["a"], "add a new toxic", _cmd_toxic_add)
    _toxic_flags(add)
    add.add_argument("--type", "-t", default="", help="type of toxic")
    _toxicity_and_attributes(add)
    add.add_argument("--upstream", "-u", action="store_true", help="add toxic to upstream")
    add.add_argument(
        "--downstream", "-d", action="store_true", help="add toxic to downstream (default)"
    )
    _with_args(add)

    update = _command(
        toxic_commands, "update", ["u"], "update an enabled toxic", _cmd_toxic_update
    )
    _toxic_flags(update)
    _toxicity_and_attributes(update)
    _with_args(update)

    remove = _command(
        toxic_commands,
        "remove",
        ["r", "delete", "d"],
        "remove an enabled toxic",
        _cmd_toxic_remove,
    )
    _toxic_flags(remove)
    _with_args(remove)

    return parser


def _make_client(host: str) -> Client:
    client = Client(host)
    client.user_agent = (
        f"toxiproxy-cli/{VERSION} ({platform.system().lower()}/{platform.machine()})"
    )
    return client


def main(argv: list[str] | None = None) -> int:
    """Run the command line and return the exit status."""
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as exc:
        if exc.code is None:
            return 0
        return exc.code if isinstance(exc.code, int) else 1

    handler = getattr(args, "handler", None)
    if handler is None:
        parser.print_help()
        return 0

    session = _Session(client=_make_client(args.host), is_tty=sys.stdout.isatty(), out=sys.stdout)
    try:
        handler(args, session)
    except CommandError as exc:
        print(exc.message, file=sys.stderr)
        return exc.exit_code
    return 0


if __name__ == "__main__":
    sys.exit(main())