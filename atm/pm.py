"""APT source list generation and the record of enrolled topics."""

from __future__ import annotations

import contextlib
import dataclasses
import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from atm.network import TopicManifest
from atm.parser import list_installed

SOURCE_HEADER = b"# Generated by AOSC Topic Manager. DO NOT EDIT THIS FILE!\n"
SOURCE_PATH = "/etc/apt/sources.list.d/atm.list"
SOURCE_PATH_NEW = "/etc/apt/sources.list.d/atm.sources"
STATE_PATH = "/var/lib/atm/state"
STATE_DIR = "/var/lib/atm/"
DPKG_STATE = "/var/lib/dpkg/status"


@dataclass
class PreviousTopic:
    """A topic recorded as enrolled the last time the sources were written."""

    name: str
    packages: List[str] = field(default_factory=list)
    description: Optional[str] = None
    date: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PreviousTopic":
        if not isinstance(data, dict):
            raise ValueError("previous topic must be an object")
        for key in ("name", "packages"):
            if key not in data:
                raise ValueError(f"missing field {key!r}")
        name = data["name"]
        if not isinstance(name, str):
            raise ValueError("field 'name' must be a string")
        packages = data["packages"]
        if not isinstance(packages, list) or not all(
            isinstance(p, str) for p in packages
        ):
            raise ValueError("field 'packages' must be a list of strings")
        description = data.get("description")
        if description is not None and not isinstance(description, str):
            raise ValueError("field 'description' must be a string")
        date = data.get("date", 0)
        if not isinstance(date, int) or isinstance(date, bool):
            raise ValueError("field 'date' must be an integer")
        return cls(
            name=name, packages=list(packages), description=description, date=date
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "date": self.date,
            "packages": list(self.packages),
        }


@dataclass(frozen=True)
class SourcePaths:
    """Filesystem locations the source list and state are written to."""

    source: str = SOURCE_PATH
    source_new: str = SOURCE_PATH_NEW
    state: str = STATE_PATH
    state_dir: str = STATE_DIR


def close_topics(
    topics: Iterable[TopicManifest], dpkg_status: str = DPKG_STATE
) -> List[str]:
    """Return the installed packages of the given topics (to be reinstalled)."""
    with open(dpkg_status, "rb") as f:
        installed = list_installed(f.read())
    return [
        package
        for topic in topics
        for package in topic.packages
        if package in installed
    ]


def get_previous_topics(state_path: str = STATE_PATH) -> List[PreviousTopic]:
    """Load the list of enrolled topics from the state file."""
    with open(state_path, "rb") as f:
        data = json.load(f)
    if not isinstance(data, list):
        raise ValueError("state file must hold a list")
    return [PreviousTopic.from_dict(item) for item in data]


def get_display_listing(
    current: Iterable[TopicManifest], state_path: str = STATE_PATH
) -> List[TopicManifest]:
    """Merge available topics with previously enrolled ones.

    Enrolled topics still available are marked enabled; enrolled topics no
    longer available are listed first and marked closed.
    """
    try:
        previous = get_previous_topics(state_path)
    except (OSError, ValueError):
        previous = []

    lookup: Dict[str, TopicManifest] = {}
    for topic in current:
        lookup[topic.name] = dataclasses.replace(
            topic, arch=set(topic.arch), packages=list(topic.packages)
        )

    listing: List[TopicManifest] = []
    for prev in previous:
        existing = lookup.get(prev.name)
        if existing is not None:
            existing.enabled = True
            continue
        listing.append(
            TopicManifest(
                name=prev.name,
                date=prev.date,
                arch=set(),
                packages=list(prev.packages),
                description=prev.description,
                enabled=False,
                closed=True,
            )
        )
    listing.extend(lookup.values())
    return listing


def save_as_previous_topics(topics: Iterable[TopicManifest]) -> str:
    """Serialise the enabled topics as the state file's JSON text."""
    previous = [
        PreviousTopic(
            name=t.name,
            packages=list(t.packages),
            description=t.description,
            date=t.date,
        ).to_dict()
        for t in topics
        if t.enabled
    ]
    return json.dumps(previous, separators=(",", ":"), ensure_ascii=False)


def normalize_url(url: str) -> str:
    """Ensure a URL ends with a slash."""
    return url if url.endswith("/") else url + "/"


def make_topic_list_deb822(topics: Iterable[TopicManifest], mirror_url: str) -> str:
    """Render the topics as a deb822 ``.sources`` stanza."""
    suites = "".join(" " + t.name for t in topics)
    return (
        f"Types: deb\nURIs: {mirror_url}debs\nSuites: {suites}\n"
        "Components: main\n\n"
    )


def make_topic_list(topics: Iterable[TopicManifest], mirror_url: str) -> str:
    """Render the topics as one-line-style ``sources.list`` entries."""
    url = normalize_url(mirror_url)
    return "".join(
        f"# Topic `{t.name}`\ndeb {url}debs {t.name} main\n" for t in topics
    )


def write_source_list(
    topics: List[TopicManifest],
    mirror_url: str,
    paths: Optional[SourcePaths] = None,
) -> None:
    """Write the APT source list for the topics and record the enabled ones.

    The deb822 file is used when it already exists; the legacy list file is
    then removed. Otherwise the legacy list file is created.
    """
    if paths is None:
        paths = SourcePaths()
    topics = list(topics)
    try:
        fd = os.open(paths.source_new, os.O_WRONLY | os.O_TRUNC)
    except OSError:
        out = open(paths.source, "wb")
        body = make_topic_list(topics, mirror_url)
    else:
        out = os.fdopen(fd, "wb")
        with contextlib.suppress(OSError):
            os.remove(paths.source)
        body = make_topic_list_deb822(topics, mirror_url)
    with out:
        out.write(SOURCE_HEADER)
        out.write(body.encode("utf-8"))

    os.makedirs(paths.state_dir, exist_ok=True)
    with open(paths.state, "wb") as f:
        f.write(save_as_previous_topics(topics).encode("utf-8"))