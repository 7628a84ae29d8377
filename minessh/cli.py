"""Command-line interface for minessh."""

import argparse
import asyncio
import codecs
import getpass
import sys
from typing import Callable, List, Optional

from colorama import init as colorama_init

from .constants import CLR_BOLD_GREEN, CLR_BOLD_RED, CLR_BOLD_YELLOW, CLR_RESET, CLR_YELLOW
from .core.application import MineSSH, create_application
from .core.orchestrator import Orchestrator
from .llm.client import GatewayError
from .llm.parsers import render_segments
from .models import ChatMessage, Role
from .session.transport import TransportError
from .utils.helpers import parse_target
from .utils.logging import logger
from . import __version__


CONSOLE_HELP = """\
Type a request for the assistant, or one of:
  /stop                     stop the running task
  /auto on|off              relay command output back to the model automatically
  /personas                 list personas
  /persona <id>             switch persona
  /persona add <title> | <content>
  /persona del <id>
  /models                   list models offered by the endpoint
  /history [all]            show the transcript (all includes hidden entries)
  /status                   show the loop state
  /quit                     disconnect and exit"""


def create_parser() -> argparse.ArgumentParser:
    """Create the command-line argument parser."""
    parser = argparse.ArgumentParser(
        description="minessh: let a language model operate an SSH session, one command at a time.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  minessh root@192.168.1.10            # Connect and start the console
  minessh admin@server -p 2222 --debug
  minessh --list-models                # Show models offered by the configured endpoint
  minessh --config-summary
        """
    )

    parser.add_argument(
        'target',
        nargs='?',
        help="[user@]host to connect to. Defaults to the connection section of the config."
    )
    parser.add_argument('-p', '--port', type=int, help="SSH port")
    parser.add_argument('-i', '--identity', type=str, help="Private key file; skips the password prompt")
    parser.add_argument('--version', action='version', version=f'minessh {__version__}')
    parser.add_argument('--debug', action='store_true', help="Enable debug logging output")
    parser.add_argument('--config-dir', type=str, help="Custom configuration directory path")
    parser.add_argument('--config-summary', action='store_true', help="Show configuration summary and exit")
    parser.add_argument('--list-models', action='store_true', help="List available models and exit")
    parser.add_argument('--no-auto-run', action='store_true',
                        help="Do not relay command output back to the model automatically")

    return parser


def print_message(message: ChatMessage) -> None:
    """Render a transcript entry for the console."""
    if message.hidden or message.role == Role.USER:
        return
    if message.role == Role.SYSTEM:
        logger.system(message.content)
        return

    for segment in render_segments(message.content):
        if segment.kind == "command":
            print(f"{CLR_BOLD_YELLOW}$ {segment.content or '(Enter)'}{CLR_RESET}")
        elif segment.kind == "file":
            print(f"{CLR_BOLD_YELLOW}[write {segment.path}]{CLR_RESET}\n{CLR_YELLOW}{segment.content}{CLR_RESET}")
        else:
            print(f"{CLR_BOLD_GREEN}{segment.content.strip()}{CLR_RESET}")


def create_terminal_writer() -> Callable[[bytes], None]:
    """Echo raw remote output; independent of the completion detector."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def write_terminal(data: bytes) -> None:
        sys.stdout.write(decoder.decode(data))
        sys.stdout.flush()

    return write_terminal


async def handle_console_command(app: MineSSH, orchestrator: Orchestrator, line: str) -> bool:
    """Run a /command. Returns False when the console should exit."""
    parts = line[1:].split(maxsplit=1)
    name = parts[0].lower() if parts else ""
    arg = parts[1].strip() if len(parts) > 1 else ""

    if name in ("quit", "exit", "q"):
        return False
    if name == "stop":
        orchestrator.stop()
    elif name == "auto":
        if arg.lower() not in ("on", "off"):
            logger.warning("Usage: /auto on|off")
        else:
            orchestrator.set_auto_run(arg.lower() == "on")
            logger.system(f"Auto-run {arg.lower()}")
    elif name == "personas":
        for persona in app.personas.personas:
            marker = "*" if persona.id == app.personas.active_id else " "
            logger.system(f"{marker} {persona.id}: {persona.title}")
    elif name == "persona":
        _handle_persona(app, orchestrator, arg)
    elif name == "models":
        try:
            for model in await app.list_models():
                logger.system(f"  {model}")
        except GatewayError as e:
            logger.error(f"Failed to fetch models: {e}")
    elif name == "history":
        for message in orchestrator.messages(include_hidden=arg == "all"):
            hidden = " (hidden)" if message.hidden else ""
            logger.system(f"[{message.role.value}{hidden}] {message.content}")
    elif name == "status":
        logger.system(f"State: {orchestrator.state.value}, auto-run: {orchestrator.auto_run}, "
                      f"running: {orchestrator.current_directive or '-'}")
    else:
        print(CONSOLE_HELP)
    return True


def _handle_persona(app: MineSSH, orchestrator: Orchestrator, arg: str) -> None:
    if arg.startswith("add "):
        title, _, content = arg[4:].partition("|")
        persona = app.add_persona(title, content)
        if persona:
            logger.system(f"Added persona {persona.id}: {persona.title}")
    elif arg.startswith("del "):
        if not app.delete_persona(arg[4:].strip()):
            logger.warning(f"No persona {arg[4:].strip()}")
    elif arg:
        try:
            orchestrator.select_persona(arg)
        except KeyError as e:
            logger.warning(str(e))
    else:
        logger.warning("Usage: /persona <id> | add <title> | <content> | del <id>")


async def run_console(app: MineSSH, host: str, port: int, username: str,
                      password: Optional[str], key_filename: Optional[str], auto_run: bool) -> int:
    """Connect and run the interactive console until the operator quits."""
    loop = asyncio.get_running_loop()
    app.transport.loop = loop
    app.setup_signal_handlers(loop)

    try:
        session_id = await app.connect(host, port, username, password, key_filename)
    except TransportError as e:
        logger.error(str(e))
        return 1

    app.transport.on_data(session_id, create_terminal_writer())
    orchestrator = app.attach(session_id, on_message=print_message)
    if not auto_run:
        orchestrator.set_auto_run(False)

    logger.system(f"Connected to {username}@{host}. Type /help for console commands.")
    try:
        while session_id in app.orchestrators:
            try:
                line = await loop.run_in_executor(None, input, f"\n{CLR_BOLD_RED}minessh>{CLR_RESET} ")
            except EOFError:
                break
            line = line.strip()
            if not line:
                continue
            if line.startswith("/"):
                if not await handle_console_command(app, orchestrator, line):
                    break
                continue
            orchestrator.send_user_message(line)
    finally:
        app.shutdown()
        logger.system("Goodbye!")
    return 0


def main(args: Optional[List[str]] = None) -> None:
    """Main entry point for the CLI."""
    colorama_init(autoreset=True)

    parser = create_parser()
    parsed_args = parser.parse_args(args)

    try:
        app = create_application(config_dir=parsed_args.config_dir, debug=parsed_args.debug)
    except SystemExit:
        # Configuration setup was needed - already handled
        return
    except Exception as e:
        logger.error(f"Failed to initialize minessh: {e}")
        sys.exit(1)

    if parsed_args.config_summary:
        app.print_config_summary()
        return

    if parsed_args.list_models:
        try:
            for model in asyncio.run(app.list_models()):
                print(model)
        except GatewayError as e:
            logger.error(f"Failed to fetch models: {e}")
            sys.exit(1)
        return

    connection = app.config["connection"]
    username, host = parse_target(parsed_args.target) if parsed_args.target else (None, connection["host"])
    username = username or connection["username"] or getpass.getuser()
    port = parsed_args.port or connection["port"]
    if not host:
        parser.error("no host given and connection.host is not configured")

    password = None
    if not parsed_args.identity:
        password = getpass.getpass(f"{username}@{host}'s password: ")

    try:
        status = asyncio.run(run_console(
            app, host, port, username, password, parsed_args.identity, not parsed_args.no_auto_run
        ))
    except KeyboardInterrupt:
        logger.system("Interrupted")
        status = 130
    sys.exit(status)


if __name__ == "__main__":
    main()
