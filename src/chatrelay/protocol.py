"""
=============================================================================
WIRE PROTOCOL
=============================================================================

The relay speaks plain newline-terminated UTF-8 text. There is no framing,
no length prefix and no message tag:

    Client → Server
    ───────────────
        alice\\n              ← first line on a connection is the login
        hi everyone\\n        ← every later line is a chat message
        sair\\n               ← exit keyword (any case) ends the session

    Server → Client
    ───────────────
        Cliente bob logado.\\n    ← join announcement
        bob diz: hello\\n         ← relayed chat message

A line is a login or a message only by its POSITION on the connection,
never by its content. Both server→client kinds look the same to a client,
which simply prints them.

=============================================================================
"""

EXIT_KEYWORD = "sair"
"""Literal (case-insensitive) line that ends a client's participation."""

LINE_TERMINATOR = "\n"

ENCODING = "utf-8"


def is_exit(line: str) -> bool:
    """Check whether a received line is the exit keyword."""
    return line.lower() == EXIT_KEYWORD


def format_login_announcement(login: str) -> str:
    """Build the announcement broadcast when a client logs in."""
    return f"Cliente {login} logado."


def format_chat_message(login: str, text: str) -> str:
    """Build the line relayed to everyone else for a chat message."""
    return f"{login} diz: {text}"


def strip_terminator(line: str) -> str:
    """
    Remove the trailing line terminator from a raw line.

    Accepts both "\\n" and "\\r\\n" so telnet/netcat style peers work.
    """
    if line.endswith("\n"):
        line = line[:-1]
    if line.endswith("\r"):
        line = line[:-1]
    return line
