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

"""Mount table parsing, and translation of btrfs paths to OS paths.

A btrfs filesystem may be mounted several times, each mount exposing a
different part of the subvolume tree (e.g. with "subvol=" or bind mounts). The
"root" of a mount is the btrfs path that appears at its mount point. To find
the OS path of a subvolume, we find the mount whose root is the longest prefix
of the subvolume's btrfs path, similar to longest-prefix routing.

References:
* https://www.kernel.org/doc/Documentation/filesystems/proc.txt
* https://mpdesouza.com/blog/btrfs-differentiating-bind-mounts-on-subvolumes/
"""

from __future__ import annotations

import dataclasses
from dataclasses import field
from pathlib import PurePosixPath
import re
from typing import TYPE_CHECKING

from backup_btrfs._internal.errors import ParseError
from backup_btrfs._internal.errors import PathConversionError

if TYPE_CHECKING:
    from collections.abc import Collection
    from collections.abc import Iterable
    from collections.abc import Iterator
    from collections.abc import Mapping

FS_TYPE = "btrfs"

FINDMNT_COLUMNS = ("FSROOT", "TARGET", "FSTYPE", "SOURCE", "OPTIONS")
"""The columns requested from findmnt, in the order parse_findmnt expects."""

_FINDMNT_FIELDS = ("root", "mount point", "fs type", "device", "options")

# findmnt escapes with \x20, /proc/self/mountinfo with \040
_ESCAPE = re.compile(r"\\(?:x([0-9a-fA-F]{2})|([0-7]{3}))")


@dataclasses.dataclass(frozen=True)
class MountInformation:
    """One mounted instance of a filesystem.

    Attributes:
        device: The mount source, e.g. /dev/mapper/data.
        root: The path within the filesystem which appears at the mount point.
        mount_point: The OS path of the mount.
        fs_type: The type of filesystem, e.g. "btrfs".
        properties: The mount options. Options without a value map to None.
    """

    device: str
    root: str
    mount_point: str
    fs_type: str
    properties: Mapping[str, str | None] = field(default_factory=dict)


def _unescape(value: str) -> str:
    def replace(m: re.Match[str]) -> str:
        hex_code, oct_code = m.groups()
        return chr(int(hex_code, 16) if hex_code else int(oct_code, 8))

    return _ESCAPE.sub(replace, value)


def parse_options(options: str) -> dict[str, str | None]:
    """Parse a comma-separated list of mount options into a dict."""
    result: dict[str, str | None] = {}
    for option in options.split(","):
        if not option:
            continue
        key, sep, value = option.partition("=")
        result[key] = value if sep else None
    return result


def _iter_lines(output: str) -> Iterator[str]:
    for line in output.splitlines():
        if line.strip():
            yield line


def parse_findmnt(output: str) -> list[MountInformation]:
    """Parse the output of `findmnt -lnv -o FSROOT,TARGET,FSTYPE,SOURCE,OPTIONS`.

    Args:
        output: The text output of the command.

    Returns:
        The mounts, in listing order.

    Raises:
        ParseError: If a line is missing a field.
    """
    mounts = []
    for line in _iter_lines(output):
        tokens = line.split()
        if len(tokens) < len(_FINDMNT_FIELDS):
            msg = (
                f"could not find {_FINDMNT_FIELDS[len(tokens)]} in mount "
                f"information: {line!r}"
            )
            raise ParseError(msg)
        root, mount_point, fs_type, device, options = tokens[:5]
        mounts.append(
            MountInformation(
                device=_unescape(device),
                root=_unescape(root),
                mount_point=_unescape(mount_point),
                fs_type=fs_type,
                properties=parse_options(options),
            )
        )
    return mounts


def parse_mountinfo(output: str) -> list[MountInformation]:
    """Parse the contents of /proc/self/mountinfo.

    Each line looks like:

        36 35 98:0 /mnt1 /mnt2 rw,noatime master:1 - ext3 /dev/root rw,errors=continue

    The number of optional fields before the "-" separator varies. The
    properties of the result are the super block options (the last field).

    Args:
        output: The contents of the file.

    Returns:
        The mounts, in listing order.

    Raises:
        ParseError: If a line is missing a field.
    """
    mounts = []
    for line in _iter_lines(output):
        tokens = line.split()
        if len(tokens) < 4:  # noqa: PLR2004
            msg = f"could not find root in mount information: {line!r}"
            raise ParseError(msg)
        if len(tokens) < 5:  # noqa: PLR2004
            msg = f"could not find mount point in mount information: {line!r}"
            raise ParseError(msg)
        try:
            sep = tokens.index("-", 6)
        except ValueError:
            msg = f"could not find fs type in mount information: {line!r}"
            raise ParseError(msg) from None
        rest = tokens[sep + 1 :]
        for i, name in enumerate(("fs type", "device", "properties")):
            if len(rest) <= i:
                msg = f"could not find {name} in mount information: {line!r}"
                raise ParseError(msg)
        mounts.append(
            MountInformation(
                device=_unescape(rest[1]),
                root=_unescape(tokens[3]),
                mount_point=_unescape(tokens[4]),
                fs_type=rest[0],
                properties=parse_options(rest[2]),
            )
        )
    return mounts


def to_fs_path(
    mounts: Iterable[MountInformation], device: str | Collection[str], btrfs_path: str
) -> str:
    """Translate a btrfs path into an OS path.

    Args:
        mounts: The mount table.
        device: The device containing the subvolume. This may also be a
            collection of names for the same device (for example a symlink in
            /dev/disk/by-uuid and its target).
        btrfs_path: The absolute path within the filesystem tree.

    Returns:
        The OS path, under the mount point of the mount whose root is the
        longest prefix of btrfs_path.

    Raises:
        PathConversionError: If no btrfs mount of the device contains the
            path.
    """
    devices = {device} if isinstance(device, str) else set(device)
    path = PurePosixPath(btrfs_path)
    best: MountInformation | None = None
    for mount in mounts:
        if mount.fs_type != FS_TYPE or mount.device not in devices:
            continue
        if not path.is_relative_to(mount.root):
            continue
        if best is None or len(mount.root) > len(best.root):
            best = mount
    if best is None:
        msg = (
            f"error converting btrfs path {btrfs_path} on {', '.join(sorted(devices))} "
            "into filesystem path"
        )
        raise PathConversionError(msg)
    return str(PurePosixPath(best.mount_point) / path.relative_to(best.root))
