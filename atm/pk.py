"""PackageKit package identifiers and transaction summaries."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

# PackageKit bit flags (may be OR'ed together)
PK_FILTER_ENUM_NEWEST = 1 << 16
PK_FILTER_ENUM_ARCH = 1 << 18
PK_FILTER_ENUM_NOT_SOURCE = 1 << 21
PK_TRANSACTION_FLAG_ENUM_ONLY_TRUSTED = 1 << 1
PK_TRANSACTION_FLAG_ENUM_SIMULATE = 1 << 2
PK_TRANSACTION_FLAG_ENUM_ALLOW_REINSTALL = 1 << 4
PK_TRANSACTION_FLAG_ENUM_ALLOW_DOWNGRADE = 1 << 6
PK_NETWORK_ENUM_MOBILE = 5

_STABLE_PREFIXES = ("aosc-stable-", "installed:aosc-stable-")


class PkInfo(IntEnum):
    """PackageKit package info values."""

    INSTALLED = 1
    AVAILABLE = 2
    UPDATING = 11
    INSTALLING = 12
    REMOVING = 13
    OBSOLETING = 15
    REINSTALLING = 19
    DOWNGRADING = 20


class PkStatus(IntEnum):
    """PackageKit transaction status values."""

    WAIT = 1
    SETUP = 2
    DOWNLOAD = 8
    INSTALL = 9


@dataclass
class PkPackage:
    """A package as reported by a PackageKit ``Package`` signal."""

    info: int
    package_id: str
    summary: str = ""


@dataclass(frozen=True)
class PackageId:
    """The four parts of a PackageKit package identifier."""

    name: str
    version: str = ""
    arch: str = ""
    data: str = ""


@dataclass
class TaskList:
    """Packages grouped by what a transaction will do to them."""

    hold: List[PackageId] = field(default_factory=list)
    upgrade: List[PackageId] = field(default_factory=list)
    install: List[PackageId] = field(default_factory=list)
    downgrade: List[PackageId] = field(default_factory=list)
    erase: List[PackageId] = field(default_factory=list)


def parse_package_id(package_id: str) -> Optional[PackageId]:
    """Split ``name;version;arch;data``; return None if a part is missing."""
    parts = package_id.split(";", 3)
    if len(parts) < 4:
        return None
    name, version, arch, data = parts
    return PackageId(name=name, version=version, arch=arch, data=data)


def humanize_package_id(package_id: str) -> str:
    """Render a package identifier as ``name (version) [arch]``."""
    parsed = parse_package_id(package_id)
    if parsed is None:
        return "? (?)"
    return f"{parsed.name} ({parsed.version}) [{parsed.arch}]"


def get_task_details(not_found: Iterable[str], meta: Iterable[PkPackage]) -> TaskList:
    """Classify the packages of a simulated transaction.

    Names in ``not_found`` are held back; packages with an unparsable
    identifier raise :class:`ValueError`.
    """
    tasks = TaskList(hold=[PackageId(name=name) for name in not_found])
    for package in meta:
        parsed = parse_package_id(package.package_id)
        if parsed is None:
            raise ValueError(f"({package.package_id})")
        info = package.info & 0xFF
        if info in (PkInfo.INSTALLING, PkInfo.REINSTALLING):
            tasks.install.append(parsed)
        elif info == PkInfo.UPDATING:
            tasks.upgrade.append(parsed)
        elif info == PkInfo.DOWNGRADING:
            tasks.downgrade.append(parsed)
        elif info == PkInfo.REMOVING:
            tasks.erase.append(parsed)
    return tasks


def select_stable_candidates(
    packages: Sequence[str], candidates: Iterable[PkPackage]
) -> Tuple[List[str], List[str]]:
    """Pick the stable-branch package id for each requested name.

    Returns ``(not_found, package_ids)``. Packages already installed at the
    stable version are left out of both lists.
    """
    if not packages:
        return [], []

    stable: Dict[str, PkPackage] = {}
    for candidate in candidates:
        parsed = parse_package_id(candidate.package_id)
        if parsed is None:
            raise ValueError("Invalid package id")
        if not parsed.data.startswith(_STABLE_PREFIXES):
            continue
        stable.setdefault(parsed.name, candidate)

    found: List[str] = []
    not_found: List[str] = []
    for name in packages:
        candidate = stable.get(name)
        if candidate is None:
            not_found.append(name)
        elif candidate.info != PkInfo.INSTALLED:
            found.append(candidate.package_id)
    return not_found, found