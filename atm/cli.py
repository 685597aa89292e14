"""Command-line interface for managing topic enrolment."""

from __future__ import annotations

import argparse
import hashlib
import json
import os
import subprocess
import sys
import tempfile
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence, TextIO

import requests

from atm import network, pm
from atm.network import TopicManifest

MSG_NEEDS_ROOT = "This operation requires root privileges."
MSG_HEADLESS_SUDO_UNSUPPORTED = (
    "Unable to escalate privileges without a graphical session; "
    "please run this command as root."
)
MSG_SUDO_FAILURE = "Unable to start the privilege escalation helper."
MSG_AUTHENTICATION_FAILURE = "Authentication failed: {reason}"
MSG_REFRESH_MANIFEST = "Refreshing topic manifest..."
MSG_FETCH_ERROR_FALLBACK = (
    "Unable to fetch the topic manifest; only enrolled topics are shown."
)
MSG_TOPIC_TABLE_HINT = "Topics marked with * are enrolled."
MSG_APT_FINISHED = "APT configuration updated."
MSG_HASH_MISMATCH = "Hash mismatch."
HEADER_NAME = "Name"
HEADER_DATE = "Date"
HEADER_DESCRIPTION = "Description"

_ENABLED_SORT_BONUS = 1_000_000_000
_TAB_MIN_WIDTH = 2
_TAB_PADDING = 2


def format_timestamp(t: int) -> str:
    """Format a Unix timestamp as an ISO ``YYYY-MM-DD`` date in UTC."""
    try:
        moment = datetime.fromtimestamp(t, tz=timezone.utc)
    except (OverflowError, OSError, ValueError) as exc:
        raise ValueError(f"timestamp out of range: {t}") from exc
    return f"{moment.year:04d}-{moment.month:02d}-{moment.day:02d}"


def sha256_hex(data: bytes) -> str:
    """Return the lower-case hexadecimal SHA-256 digest of ``data``."""
    return hashlib.sha256(data).hexdigest()


def needs_root() -> None:
    """Raise :class:`PermissionError` unless running as root."""
    if os.geteuid() != 0:
        raise PermissionError(MSG_NEEDS_ROOT)


def _align_tabs(lines: Sequence[str]) -> List[str]:
    rows = [line.split("\t") for line in lines]
    widths: List[int] = []
    for cells in rows:
        for i, cell in enumerate(cells[:-1]):
            width = max(len(cell) + _TAB_PADDING, _TAB_MIN_WIDTH)
            if i < len(widths):
                widths[i] = max(widths[i], width)
            else:
                widths.append(width)
    return [
        "".join(cell.ljust(widths[i]) for i, cell in enumerate(cells[:-1]))
        + cells[-1]
        for cells in rows
    ]


def format_manifests(
    topics: Iterable[TopicManifest], stream: Optional[TextIO] = None
) -> None:
    """Write the topics as an aligned table, enrolled ones marked with ``*``."""
    if stream is None:
        stream = sys.stderr
    lines = [f"  {HEADER_NAME}\t{HEADER_DATE}\t{HEADER_DESCRIPTION}"]
    for topic in topics:
        try:
            date = format_timestamp(topic.date)
        except ValueError:
            date = "?"
        mark = "*" if topic.enabled else " "
        lines.append(f"{mark} {topic.name}\t{date}\t{topic.description or ''}")
    for line in _align_tabs(lines):
        stream.write(line + "\n")
    stream.flush()


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for all subcommands."""
    parser = argparse.ArgumentParser(prog="atm", description="AOSC Topic Manager")
    commands = parser.add_subparsers(dest="command")

    commands.add_parser("list", help="list current topics and available topics")

    refresh = commands.add_parser("refresh", help="refresh APT configurations")
    refresh.add_argument(
        "-f", "--filename", help="filename of the topic list file (optional)"
    )
    refresh.add_argument(
        "-c", "--checksum", help="checksum of the topic list file (optional)"
    )
    refresh.add_argument(
        "-m", "--mirror", help="mirror URL to use for the topic list file (optional)"
    )

    add = commands.add_parser("add", help="enroll into a new topic")
    add.add_argument("names", nargs="*", metavar="name", help="name of the topic")

    remove = commands.add_parser("remove", help="exit from a topic")
    remove.add_argument("names", nargs="*", metavar="name", help="name of the topic")

    return parser


def privileged_write_source_list(
    topics: Sequence[TopicManifest], mirror_url: str
) -> None:
    """Write the source list, escalating through pkexec when not root.

    The topics are handed to the privileged process in a temporary file
    together with their checksum, so the file cannot be swapped in between.
    """
    if os.geteuid() == 0:
        pm.write_source_list(list(topics), mirror_url)
        return
    if "DISPLAY" not in os.environ:
        raise RuntimeError(MSG_HEADLESS_SUDO_UNSUPPORTED)

    payload = json.dumps([t.to_dict() for t in topics]).encode("utf-8")
    checksum = sha256_hex(payload)
    with tempfile.NamedTemporaryFile(prefix="atm-", suffix=".json") as transfer:
        transfer.write(payload)
        transfer.flush()
        command = [
            "pkexec",
            sys.executable,
            "-m",
            "atm.cli",
            "refresh",
            "-c",
            checksum,
            "-m",
            mirror_url,
            "-f",
            transfer.name,
        ]
        try:
            result = subprocess.run(
                command, stdout=subprocess.DEVNULL, stderr=subprocess.PIPE
            )
        except OSError as exc:
            raise RuntimeError(MSG_SUDO_FAILURE) from exc
    if result.returncode != 0:
        reason = (result.stderr or b"").decode("utf-8", errors="replace")
        raise RuntimeError(MSG_AUTHENTICATION_FAILURE.format(reason=reason))


def _fetch_available_topics() -> List[TopicManifest]:
    session = network.create_http_client()
    mirror_url = network.get_best_mirror_url(session)
    topics = network.fetch_topics(session, mirror_url)
    return network.filter_topics(topics)


def list_topics() -> None:
    """Print enrolled and available topics to standard error."""
    sys.stderr.write(MSG_REFRESH_MANIFEST)
    sys.stderr.flush()
    fallback = False
    try:
        available = _fetch_available_topics()
    except (requests.RequestException, OSError, ValueError):
        fallback = True
        available = []
    topics = pm.get_display_listing(available)
    topics.sort(key=lambda t: t.date + (_ENABLED_SORT_BONUS if t.enabled else 0))
    sys.stderr.write("\r\t\t\r")
    format_manifests(topics, sys.stderr)
    if fallback:
        print(MSG_FETCH_ERROR_FALLBACK, file=sys.stderr)
    else:
        print("\n" + MSG_TOPIC_TABLE_HINT, file=sys.stderr)


def refresh_topics(
    filename: Optional[str] = None,
    checksum: Optional[str] = None,
    mirror_url: Optional[str] = None,
) -> None:
    """Rewrite the APT configuration from a topic file or the saved state."""
    needs_root()
    if filename is not None:
        with open(filename, "rb") as f:
            payload = f.read()
        if checksum is not None and sha256_hex(payload) != checksum:
            raise ValueError(MSG_HASH_MISMATCH)
        data = json.loads(payload)
        if not isinstance(data, list):
            raise ValueError("topic list must be a list")
        topics = [TopicManifest.from_dict(item) for item in data]
    else:
        topics = pm.get_display_listing([])
        for topic in topics:
            topic.enabled = True
    if mirror_url is None:
        mirror_url = network.get_sensible_mirror_url()
    pm.write_source_list(topics, mirror_url)
    print(MSG_APT_FINISHED)


def add_topics(names: Sequence[str]) -> None:
    """Enroll into the named topics, keeping existing enrolments."""
    needs_root()
    print(MSG_REFRESH_MANIFEST, file=sys.stderr)
    session = network.create_http_client()
    mirror_url = network.get_best_mirror_url(session)
    available = _fetch_available_topics()
    topics = pm.get_display_listing(available)
    wanted = set(names)
    for topic in topics:
        topic.enabled = topic.enabled or topic.name in wanted
    pm.write_source_list([t for t in topics if t.enabled], mirror_url)
    print(MSG_APT_FINISHED)


def remove_topics(names: Sequence[str]) -> None:
    """Leave the named topics, keeping the other enrolments."""
    needs_root()
    unwanted = set(names)
    topics = pm.get_display_listing([])
    for topic in topics:
        topic.enabled = topic.name not in unwanted
    pm.write_source_list(topics, network.get_sensible_mirror_url())
    print(MSG_APT_FINISHED)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the command line; return the process exit status."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help(sys.stderr)
        return 1
    if args.command == "list":
        list_topics()
        return 0
    try:
        if args.command == "refresh":
            refresh_topics(args.filename, args.checksum, args.mirror)
        elif args.command == "add":
            add_topics(args.names)
        elif args.command == "remove":
            remove_topics(args.names)
    except (OSError, ValueError, RuntimeError, requests.RequestException) as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())