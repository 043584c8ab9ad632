# SPDX-License-Identifier: BSD-2-Clause
# Copyright (c) deftio llc

"""Turn raw tool output into records.

``distrobox list`` prints a column-aligned table, cells optionally separated by
``|``, whose STATUS column holds free text such as ``Up 2 hours (healthy)``.
Splitting on whitespace is therefore unreliable, so :class:`ColumnTableParser`
slices every row by the character offsets of the header labels instead.
"""

from __future__ import annotations

import dataclasses
import json
import re
from typing import Protocol

from distrobear.errors import ParseDegraded
from distrobear.types import ContainerDetail, LocalImage

_REQUIRED_COLUMNS = ("NAME", "STATUS", "IMAGE")
_SEPARATOR_PREFIXES = ("-", "=", "+")
_CELL_CHARS = " \t|"


@dataclasses.dataclass(frozen=True)
class ListRow:
    """One parsed row of ``distrobox list`` output."""

    name: str
    status: str
    image: str


@dataclasses.dataclass(frozen=True)
class TableParse:
    """Result of parsing a listing.

    ``degraded`` is True when the header did not carry the required columns;
    ``rows`` is then empty and ``header`` holds the raw header line.
    """

    rows: tuple[ListRow, ...] = ()
    degraded: bool = False
    header: str = ""
    missing: tuple[str, ...] = ()


class ListParser(Protocol):
    """Strategy that turns a container listing into rows."""

    def parse(self, text: str) -> TableParse: ...


class ColumnTableParser:
    """Column-position parser for ``NAME  STATUS  [CREATED]  IMAGE`` tables."""

    def __init__(self, *, strict: bool = False) -> None:
        self._strict = strict

    def parse(self, text: str) -> TableParse:
        lines = [line for line in text.strip("\n").splitlines() if line.strip()]
        if not lines:
            return TableParse()

        header = lines[0]
        name_pos = header.find("NAME")
        status_pos = header.find("STATUS")
        created_pos = header.find("CREATED")
        image_pos = header.find("IMAGE")

        positions = {"NAME": name_pos, "STATUS": status_pos, "IMAGE": image_pos}
        missing = tuple(col for col in _REQUIRED_COLUMNS if positions[col] == -1)
        if missing:
            if self._strict:
                raise ParseDegraded(header, missing)
            return TableParse(degraded=True, header=header, missing=missing)

        status_end = created_pos if created_pos > status_pos else image_pos

        rows: list[ListRow] = []
        for line in lines[1:]:
            if line.lstrip().startswith(_SEPARATOR_PREFIXES):
                continue
            name = line[name_pos:status_pos].strip(_CELL_CHARS)
            status = line[status_pos:status_end].strip(_CELL_CHARS)
            image = line[image_pos:].strip(_CELL_CHARS)
            if not name or not status or not image:
                continue
            rows.append(ListRow(name=name, status=status, image=image))
        return TableParse(rows=tuple(rows), header=header)


def parse_distrobox_list(text: str) -> TableParse:
    """Parse ``distrobox list --no-color`` output with the column parser."""
    return ColumnTableParser().parse(text)


def split_tab_rows(text: str, width: int) -> list[tuple[str, ...]]:
    """Split ``--format`` output with tab-separated fields into fixed-width tuples.

    Missing trailing fields are padded with empty strings.
    """
    rows: list[tuple[str, ...]] = []
    for raw in text.splitlines():
        if not raw.strip():
            continue
        fields = raw.split("\t")
        fields += [""] * (width - len(fields))
        rows.append(tuple(f.strip() for f in fields[:width]))
    return rows


def parse_local_images(text: str) -> list[LocalImage]:
    """Parse ``images --format '{{.Repository}}:{{.Tag}}\\t{{.Size}}\\t{{.ID}}\\t{{.Created}}'``."""
    images: list[LocalImage] = []
    for repo_tag, size, image_id, created in split_tab_rows(text, 4):
        if repo_tag.startswith("<none>"):
            continue
        repository, _, tag = repo_tag.rpartition(":")
        images.append(
            LocalImage(repository=repository, tag=tag, size=size, id=image_id, created=created)
        )
    images.sort(key=lambda img: (img.repository, img.tag))
    return images


def parse_version(output: str, pattern: str) -> str:
    """Extract a version with *pattern*'s first group, falling back to the raw output."""
    match = re.search(pattern, output)
    if match:
        return match.group(1)
    return output.strip() or "Not Found"


# ---------------------------------------------------------------------------
# inspect
# ---------------------------------------------------------------------------


def decode_inspect(text: str) -> dict[str, object]:
    """Decode ``inspect`` JSON output and return the first object.

    Raises:
        ValueError: If the output is not a non-empty JSON array of objects.

    """
    data = json.loads(text)
    if isinstance(data, list):
        data = data[0] if data else None
    if not isinstance(data, dict):
        msg = "inspect output did not contain an object"
        raise ValueError(msg)
    return data


def _safe_dict(data: object, key: str) -> dict[str, object]:
    """Extract a dict sub-key from *data*, defaulting to ``{}``."""
    if not isinstance(data, dict):
        return {}
    val = data.get(key, {})
    return val if isinstance(val, dict) else {}


def _mounts(inspect: dict[str, object]) -> list[dict[str, object]]:
    mounts = inspect.get("Mounts")
    if not isinstance(mounts, list):
        return []
    return [m for m in mounts if isinstance(m, dict)]


def has_host_home_mount(inspect: dict[str, object], host_home: str) -> bool:
    """Return True if the host home directory is bind-mounted into the container."""
    return any(m.get("Source") == host_home and m.get("Type") == "bind" for m in _mounts(inspect))


def _home_dir_display(inspect: dict[str, object], host_home: str) -> str:
    if has_host_home_mount(inspect, host_home):
        return f"{host_home} (from Host)"
    for mount in _mounts(inspect):
        dest = mount.get("Destination")
        if isinstance(dest, str) and dest.startswith("/home/") and mount.get("Source"):
            return f"{mount['Source']} (Isolated)"
    return "Isolated (Internal Volume)"


def _format_volumes(inspect: dict[str, object]) -> tuple[str, ...]:
    return tuple(
        f"{m.get('Source')} -> {m.get('Destination')} ({m.get('Type')}, {m.get('Mode') or 'ro'})"
        for m in _mounts(inspect)
    )


def _uses_nvidia(host_config: dict[str, object]) -> bool:
    if host_config.get("Runtime") == "nvidia":
        return True
    devices = host_config.get("Devices")
    if not isinstance(devices, list):
        return False
    return any(isinstance(d, dict) and "nvidia" in str(d.get("PathOnHost", "")) for d in devices)


def _format_entrypoint(entrypoint: object) -> str:
    if isinstance(entrypoint, list):
        return " ".join(str(part) for part in entrypoint)
    return str(entrypoint) if entrypoint else "N/A"


def build_container_detail(
    inspect: dict[str, object],
    *,
    size: str,
    backend: str,
    host_home: str,
) -> ContainerDetail:
    """Assemble a :class:`ContainerDetail` from ``inspect`` JSON and a size lookup."""
    state = _safe_dict(inspect, "State")
    config = _safe_dict(inspect, "Config")
    host_config = _safe_dict(inspect, "HostConfig")

    user = str(config.get("User") or "")
    pid = state.get("Pid", 0)

    return ContainerDetail(
        id=str(inspect.get("Id", ""))[:12],
        name=str(inspect.get("Name", "")).lstrip("/"),
        image=str(config.get("Image", "")),
        status=str(state.get("Status", "unknown")),
        created=str(inspect.get("Created", "")),
        pid=int(pid) if isinstance(pid, (int, float)) else 0,
        entrypoint=_format_entrypoint(config.get("Entrypoint")),
        backend=backend,
        size=size.strip() or "N/A",
        home_dir=_home_dir_display(inspect, host_home),
        user_name=user or "N/A",
        hostname=str(config.get("Hostname") or "N/A"),
        init=bool(host_config.get("Init")),
        nvidia=_uses_nvidia(host_config),
        root=user in ("", "root", "0"),
        volumes=_format_volumes(inspect),
    )


def desktop_entry_value(content: str, key: str) -> str | None:
    """Return the value of the first ``key=value`` line in a ``.desktop`` file."""
    match = re.search(rf"^{re.escape(key)}=(.*)$", content, flags=re.MULTILINE)
    return match.group(1).strip() if match else None
