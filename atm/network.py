"""Topic manifests and mirror selection."""

from __future__ import annotations

import json
import platform
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set
from urllib.parse import urljoin, urlsplit

import requests

USER_AGENT = "atm/0.6.2"
PATH_TO_MANIFEST = "debs/manifest/topics.json"
APT_GEN_LIST_STATUS = "/var/lib/apt/gen/status.json"
DEFAULT_REPO_URL = "https://repo.aosc.io"

_ARCH_NAMES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "i386": "i486",
    "i486": "i486",
    "i586": "i486",
    "i686": "i486",
    "x86": "i486",
    "aarch64": "arm64",
    "arm64": "arm64",
    "ppc64": "ppc64el",
    "ppc64le": "ppc64el",
    "powerpc64": "ppc64el",
    "mips64": "loongson3",
    "riscv64": "riscv64",
    "loongarch64": "loongarch64",
}


def _str_list(value: Any, key: str) -> List[str]:
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"field {key!r} must be a list of strings")
    return list(value)


@dataclass
class TopicManifest:
    """One topic as published in the repository manifest."""

    name: str
    date: int
    arch: Set[str] = field(default_factory=set)
    packages: List[str] = field(default_factory=list)
    description: Optional[str] = None
    enabled: bool = False
    closed: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TopicManifest":
        if not isinstance(data, dict):
            raise ValueError("topic manifest must be an object")
        for key in ("name", "date", "arch", "packages"):
            if key not in data:
                raise ValueError(f"missing field {key!r}")
        name = data["name"]
        if not isinstance(name, str):
            raise ValueError("field 'name' must be a string")
        date = data["date"]
        if not isinstance(date, int) or isinstance(date, bool):
            raise ValueError("field 'date' must be an integer")
        description = data.get("description")
        if description is not None and not isinstance(description, str):
            raise ValueError("field 'description' must be a string")
        return cls(
            name=name,
            date=date,
            arch=set(_str_list(data["arch"], "arch")),
            packages=_str_list(data["packages"], "packages"),
            description=description,
            enabled=bool(data.get("enabled", False)),
            closed=bool(data.get("closed", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "closed": self.closed,
            "name": self.name,
            "description": self.description,
            "date": self.date,
            "arch": sorted(self.arch),
            "packages": list(self.packages),
        }


def get_arch_name(machine: Optional[str] = None) -> Optional[str]:
    """Map a machine name to the distribution's architecture name."""
    if machine is None:
        machine = platform.machine()
    return _ARCH_NAMES.get(machine.lower())


def create_http_client() -> requests.Session:
    """Create an HTTP session identifying itself as this tool."""
    session = requests.Session()
    session.headers["User-Agent"] = USER_AGENT
    return session


def _read_mirrors(status_path: str) -> Dict[str, str]:
    with open(status_path, "rb") as f:
        status = json.load(f)
    mirrors = status["mirror"]
    if not isinstance(mirrors, dict):
        raise ValueError("mirror list must be an object")
    return mirrors


def _manifest_url(mirror_url: str) -> str:
    parts = urlsplit(mirror_url)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"invalid URL: {mirror_url!r}")
    return urljoin(mirror_url, PATH_TO_MANIFEST)


def _test_mirror(session: requests.Session, url: str, mirror: str) -> str:
    # GET rather than HEAD: some mirrors do not handle HEAD correctly
    with session.get(url, stream=True) as resp:
        resp.raise_for_status()
    return mirror


def get_best_mirror_url(
    session: requests.Session, status_path: str = APT_GEN_LIST_STATUS
) -> str:
    """Return the first configured mirror to answer, or the default repository."""
    try:
        mirrors = _read_mirrors(status_path)
    except (OSError, ValueError, KeyError, TypeError):
        return DEFAULT_REPO_URL
    if len(mirrors) < 2:
        return DEFAULT_REPO_URL

    candidates = []
    for mirror in mirrors.values():
        try:
            candidates.append((_manifest_url(mirror), mirror))
        except (ValueError, TypeError, AttributeError):
            continue
    if not candidates:
        return DEFAULT_REPO_URL

    executor = ThreadPoolExecutor(max_workers=len(candidates))
    try:
        futures = [
            executor.submit(_test_mirror, session, url, mirror)
            for url, mirror in candidates
        ]
        for future in as_completed(futures):
            try:
                return future.result()
            except requests.RequestException:
                continue
    finally:
        executor.shutdown(wait=False, cancel_futures=True)
    return DEFAULT_REPO_URL


def get_sensible_mirror_url(status_path: str = APT_GEN_LIST_STATUS) -> str:
    """Return the first configured mirror without probing, or the default."""
    try:
        mirrors = _read_mirrors(status_path)
    except (OSError, ValueError, KeyError, TypeError):
        return DEFAULT_REPO_URL
    for mirror in mirrors.values():
        return mirror
    return DEFAULT_REPO_URL


def fetch_topics(session: requests.Session, mirror_url: str) -> List[TopicManifest]:
    """Download and decode the topic manifest from a mirror."""
    url = _manifest_url(mirror_url)
    resp = session.get(url)
    resp.raise_for_status()
    data = resp.json()
    if not isinstance(data, list):
        raise ValueError("topic manifest must be a list")
    return [TopicManifest.from_dict(item) for item in data]


def filter_topics(
    topics: List[TopicManifest], arch: Optional[str] = None
) -> List[TopicManifest]:
    """Keep only topics built for this architecture (or for all)."""
    if arch is None:
        arch = get_arch_name()
    if arch is None:
        raise ValueError("unknown architecture")
    return [t for t in topics if "all" in t.arch or arch in t.arch]