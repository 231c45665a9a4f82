# backup-btrfs - rotates btrfs snapshots and replicates them to a remote host.
#
# Copyright (C) 2024 Steven Brudenell and other contributors.
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""Types and parsers for the btrfs subvolume inventory.

The inventory comes from `btrfs subvolume list -tupqR`, which reports the
subvolume tree of a filesystem. Paths in this listing are "btrfs paths":
they're relative to the top level of the filesystem, not to wherever it
happens to be mounted. See mounts.py for translating them into paths the OS
can open.
"""

from __future__ import annotations

import dataclasses
from typing import TYPE_CHECKING
from uuid import UUID

from backup_btrfs._internal.errors import NotFoundError
from backup_btrfs._internal.errors import ParseError

if TYPE_CHECKING:
    from collections.abc import Iterable

HEADER = (
    "ID",
    "gen",
    "parent",
    "top",
    "level",
    "parent_uuid",
    "received_uuid",
    "uuid",
    "path",
)
"""The header tokens of `btrfs subvolume list -tupqR`."""

_NUM_COLUMNS = 8


@dataclasses.dataclass(frozen=True)
class Subvolume:
    """A node in the subvolume tree of a btrfs filesystem.

    Attributes:
        btrfs_path: The absolute path of the subvolume within the filesystem
            tree. This is not necessarily a path that is mounted anywhere.
        uuid: The UUID of this subvolume.
        parent_uuid: For a snapshot, the UUID of the subvolume it was taken
            from.
        received_uuid: For a subvolume created by "btrfs receive", the UUID of
            the subvolume that was sent.
    """

    btrfs_path: str
    uuid: UUID
    parent_uuid: UUID | None = None
    received_uuid: UUID | None = None


@dataclasses.dataclass(frozen=True)
class SubvolumeInfo:
    """The identity of a single subvolume, looked up by its OS path.

    Attributes:
        fs_path: The OS path used to look up the subvolume.
        btrfs_path: The absolute path within the filesystem tree.
        uuid: The UUID of the subvolume.
    """

    fs_path: str
    btrfs_path: str
    uuid: UUID


def _absolute(path: str) -> str:
    return path if path.startswith("/") else f"/{path}"


def _maybe_uuid(value: str) -> UUID | None:
    # "-" is the placeholder for no uuid
    try:
        return UUID(value)
    except ValueError:
        return None


def parse_subvolume_list(output: str) -> list[Subvolume]:
    """Parse the output of `btrfs subvolume list -tupqR`.

    Lines that don't have the expected number of columns are skipped, so a
    trailing blank line doesn't cause a failure. An unexpected header is an
    error, since it means the output format of btrfs-progs has changed.

    Args:
        output: The text output of the command.

    Returns:
        The subvolumes, in listing order.

    Raises:
        ParseError: If the header is missing or unexpected, or a subvolume's
            own UUID is malformed.
    """
    lines = output.split("\n")
    if not lines or not lines[0].strip():
        msg = "could not find header line"
        raise ParseError(msg)
    if tuple(lines[0].split()) != HEADER:
        msg = f"unexpected header line: {lines[0]!r}"
        raise ParseError(msg)

    subvolumes = []
    # lines[1] is the "--  ---  ------" separator
    for line in lines[2:]:
        tokens = line.split()
        if len(tokens) != _NUM_COLUMNS:
            continue
        _, _, _, _, parent_uuid, received_uuid, uuid, path = tokens
        try:
            parsed_uuid = UUID(uuid)
        except ValueError as ex:
            msg = f"invalid uuid for subvolume {path}: {uuid!r}"
            raise ParseError(msg) from ex
        subvolumes.append(
            Subvolume(
                btrfs_path=_absolute(path),
                uuid=parsed_uuid,
                parent_uuid=_maybe_uuid(parent_uuid),
                received_uuid=_maybe_uuid(received_uuid),
            )
        )
    return subvolumes


def parse_subvolume_show(output: str, fs_path: str) -> SubvolumeInfo:
    """Parse the output of `btrfs subvolume show <fs_path>`.

    Args:
        output: The text output of the command.
        fs_path: The path that was passed to the command.

    Returns:
        A SubvolumeInfo for the subvolume.

    Raises:
        ParseError: If the btrfs path or UUID can't be found.
    """
    lines = output.splitlines()
    if not lines or not lines[0].strip():
        msg = "could not find first line"
        raise ParseError(msg)
    btrfs_path = _absolute(lines[0].strip())

    for line in lines[1:]:
        key, sep, value = line.partition(":")
        if not sep or key.strip() != "UUID":
            continue
        try:
            uuid = UUID(value.strip())
        except ValueError as ex:
            msg = f"invalid uuid for subvolume {fs_path}: {value.strip()!r}"
            raise ParseError(msg) from ex
        return SubvolumeInfo(fs_path=fs_path, btrfs_path=btrfs_path, uuid=uuid)

    msg = f"could not find UUID of subvolume {fs_path}"
    raise ParseError(msg)


def get_subvolume_by_path(path: str, subvolumes: Iterable[Subvolume]) -> Subvolume:
    """Find a subvolume in a listing by its btrfs path.

    The backup cycle identifies subvolumes with `btrfs subvolume show`
    instead. This is for callers which already hold a full listing.

    Raises:
        NotFoundError: If no subvolume has the path.
    """
    for subvolume in subvolumes:
        if subvolume.btrfs_path == path:
            return subvolume
    msg = f"subvolume not found: {path}"
    raise NotFoundError(msg)


def get_local_snapshots(
    parent_uuid: UUID, subvolumes: Iterable[Subvolume]
) -> list[Subvolume]:
    """Returns the snapshots taken from the subvolume with the given UUID."""
    return [s for s in subvolumes if s.parent_uuid == parent_uuid]


def get_remote_snapshots(subvolumes: Iterable[Subvolume]) -> list[Subvolume]:
    """Returns the subvolumes which were created by "btrfs receive"."""
    return [s for s in subvolumes if s.received_uuid is not None]
