"""
Command-Line Interface (CLI) for JellyPot Bridge.

Usage:
    jellypot-bridge jellypot://<itemId>   Play an item and report progress
    jellypot-bridge register              Register the jellypot:// protocol handler
    jellypot-bridge unregister            Unregister the jellypot:// protocol handler
    jellypot-bridge version               Show version information
"""
import argparse
import sys
import logging

import colorama
from colorama import Fore, Style

from jellypot_bridge import __version__
from jellypot_bridge.main import main as run_bridge, setup_logging, pause_for_key
from jellypot_bridge.protocol_handler import parse_item_url, register_protocol, unregister_protocol
from jellypot_bridge.utils.constants import PROTOCOL_NAME, PROTOCOL_PREFIX

colorama.init()
logger = logging.getLogger(__name__)


def register_command(args):
    """Handles the 'register' command."""
    print(f"{Fore.CYAN}=== Registering {PROTOCOL_PREFIX} protocol ==={Style.RESET_ALL}")
    if register_protocol(PROTOCOL_NAME, f"{PROTOCOL_NAME} protocol"):
        print(f"{Fore.GREEN}[✓] Successfully registered protocol: {PROTOCOL_PREFIX}{Style.RESET_ALL}")
        return 0
    print(f"{Fore.RED}ERROR: Failed to register protocol. Administrator rights may be required.{Style.RESET_ALL}", file=sys.stderr)
    return 1


def unregister_command(args):
    """Handles the 'unregister' command."""
    if unregister_protocol(PROTOCOL_NAME):
        print(f"{Fore.GREEN}[✓] Successfully unregistered protocol: {PROTOCOL_PREFIX}{Style.RESET_ALL}")
        return 0
    print(f"{Fore.RED}ERROR: Failed to unregister protocol.{Style.RESET_ALL}", file=sys.stderr)
    return 1


def version_command(args):
    """Handles the 'version' command."""
    print(f"JellyPot Bridge v{__version__}")
    print(f"Python: {sys.version.split()[0]}")
    print(f"Platform: {sys.platform}")
    return 0


def play_command(args):
    """Handles a jellypot://<itemId> URL."""
    try:
        item_id = parse_item_url(args.target)
    except ValueError as e:
        print(f"{Fore.RED}ERROR: {e}{Style.RESET_ALL}", file=sys.stderr)
        create_parser().print_help()
        pause_for_key()
        return 1
    return run_bridge(item_id, keep_console=args.keep_console)


def create_parser():
    parser = argparse.ArgumentParser(
        prog="jellypot-bridge",
        description="JellyPot Bridge - Media playback tool connecting Jellyfin and PotPlayer",
        epilog=f"Example: jellypot-bridge {PROTOCOL_PREFIX}6b694a42d949478294df51e4ad9c5ef9",
    )
    parser.add_argument(
        "target",
        nargs="?",
        help=f"'register', 'unregister', 'version', 'help' or a {PROTOCOL_PREFIX}<itemId> URL",
    )
    parser.add_argument(
        "--keep-console",
        action="store_true",
        help="Do not hide the console window while monitoring.",
    )
    parser.add_argument("--version", "-v", action="store_true", help="Display version information.")
    return parser


def main(argv=None):
    """
    Main entry point for the CLI application.

    Returns:
        int: Exit code (0 for success, 1 for errors).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if args.version:
        return version_command(args)

    if not args.target or args.target == "help":
        parser.print_help()
        return 0

    command_map = {
        "register": register_command,
        "unregister": unregister_command,
        "version": version_command,
    }
    command = command_map.get(args.target, play_command)

    setup_logging()
    try:
        logger.info(f"Executing command: {args.target}")
        exit_code = command(args)
        logger.info(f"Command '{args.target}' finished with exit code {exit_code}.")
        return exit_code
    except Exception as e:
        logger.exception(f"Unhandled exception during command '{args.target}': {e}")
        print(f"\n{Fore.RED}UNEXPECTED ERROR: {e}{Style.RESET_ALL}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
