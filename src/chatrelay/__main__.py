"""
=============================================================================
CHATRELAY CLI ENTRY POINT
=============================================================================

    # Run the server on the well-known port (4000, all interfaces)
    python -m chatrelay server

    # Server on another port, with verbose logging
    python -m chatrelay server --port 5000 --log-level DEBUG

    # Interactive client against the local server
    python -m chatrelay client

    # Client against another machine
    python -m chatrelay client --host 192.168.0.10 --port 5000

=============================================================================
"""

import argparse
import sys

from . import __version__
from .server import ChatServer
from .client import ChatClient
from .config import ServerConfig, ClientConfig, DEFAULT_PORT, DEFAULT_SERVER_ADDRESS


RECEIVER_DRAIN_TIMEOUT = 1.0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser with `server` and `client` sub-commands."""
    parser = argparse.ArgumentParser(
        prog="chatrelay",
        description="Line-based TCP chat relay",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m chatrelay server                  # Listen on 0.0.0.0:4000
  python -m chatrelay server -p 5000 -l DEBUG # Custom port, verbose
  python -m chatrelay client                  # Connect to 127.0.0.1:4000
        """
    )

    parser.add_argument(
        "--version", "-v",
        action="version",
        version=f"chatrelay {__version__}"
    )

    sub = parser.add_subparsers(dest="command", required=True)

    # ─────────────────────────────────────────────────────────────────────
    # SERVER
    # ─────────────────────────────────────────────────────────────────────

    server = sub.add_parser("server", help="Run the chat server")
    server.add_argument(
        "--host", "-H",
        default="0.0.0.0",
        help="Host to bind to (default: 0.0.0.0)"
    )
    server.add_argument(
        "--port", "-p",
        type=int,
        default=DEFAULT_PORT,
        help=f"Port to listen on (default: {DEFAULT_PORT})"
    )
    server.add_argument(
        "--backlog",
        type=int,
        default=128,
        help="Listen backlog (default: 128)"
    )
    server.add_argument(
        "--log-level", "-l",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)"
    )

    # ─────────────────────────────────────────────────────────────────────
    # CLIENT
    # ─────────────────────────────────────────────────────────────────────

    client = sub.add_parser("client", help="Run the interactive console client")
    client.add_argument(
        "--host", "-H",
        default=DEFAULT_SERVER_ADDRESS,
        help=f"Server address (default: {DEFAULT_SERVER_ADDRESS})"
    )
    client.add_argument(
        "--port", "-p",
        type=int,
        default=DEFAULT_PORT,
        help=f"Server port (default: {DEFAULT_PORT})"
    )

    return parser


def run_server(args: argparse.Namespace) -> int:
    try:
        config = ServerConfig(
            host=args.host,
            port=args.port,
            backlog=args.backlog,
            log_level=args.log_level,
        )
        server = ChatServer(config)
    except ValueError as e:
        print(f"Configuração inválida: {e}", file=sys.stderr)
        return 1

    try:
        server.run()
    except OSError as e:
        print(f"Erro ao iniciar servidor: {e}", file=sys.stderr)
        return 1
    return 0


def run_client(args: argparse.Namespace) -> int:
    try:
        client = ChatClient(ClientConfig(host=args.host, port=args.port))
    except ValueError as e:
        print(f"Configuração inválida: {e}", file=sys.stderr)
        return 1

    try:
        client.run()
    except OSError as e:
        print(f"Erro ao conectar ao servidor: {e}", file=sys.stderr)
        return 1

    # Let the last broadcasts reach the screen; the receiver is a daemon
    # thread and dies with the process otherwise
    client.wait_for_receiver(RECEIVER_DRAIN_TIMEOUT)
    return 0


def main(argv=None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)

    if args.command == "server":
        return run_server(args)
    return run_client(args)


if __name__ == "__main__":
    sys.exit(main())
