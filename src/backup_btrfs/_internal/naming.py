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

"""The naming convention for snapshots.

A snapshot is named "<timestamp>_<suffix>", where the timestamp is the
creation time in RFC 3339 format (UTC, whole seconds) and the suffix
identifies the subvolume it was taken from, e.g.
"2020-01-02T09:30:00Z_host_home". The suffix may itself contain underscores.
"""

from __future__ import annotations

from pathlib import PurePosixPath
import re
from typing import NamedTuple
from typing import TYPE_CHECKING

import arrow

from backup_btrfs._internal.errors import ExtractionError

if TYPE_CHECKING:
    from typing_extensions import Self

    from backup_btrfs._internal.subvolumes import Subvolume

_SEPARATOR = "_"
_TIMESTAMP_FORMAT = "YYYY-MM-DDTHH:mm:ss"

_RFC3339 = re.compile(
    r"^\d{4}-\d{2}-\d{2}[Tt ]\d{2}:\d{2}:\d{2}(\.\d+)?([Zz]|[+-]\d{2}:\d{2})$"
)


def encode_snapshot_name(timestamp: arrow.Arrow, suffix: str) -> str:
    """Returns the name for a snapshot taken at the given time.

    Sub-second precision is dropped.
    """
    formatted = timestamp.to("UTC").format(_TIMESTAMP_FORMAT)
    return f"{formatted}Z{_SEPARATOR}{suffix}"


def decode_snapshot_name(path: str) -> tuple[arrow.Arrow, str]:
    """Extracts the timestamp and suffix from a snapshot path.

    Only the last component of the path is considered.

    Args:
        path: A snapshot path (btrfs path or OS path) or bare name.

    Returns:
        A (timestamp, suffix) tuple.

    Raises:
        ExtractionError: If the name doesn't contain a separator, or the part
            before the separator isn't an RFC 3339 timestamp.
    """
    name = PurePosixPath(path).name
    timestamp, sep, suffix = name.partition(_SEPARATOR)
    if not sep:
        msg = f"could not extract timestamp and suffix from {path!r}: no separator"
        raise ExtractionError(msg)
    if not _RFC3339.match(timestamp):
        msg = f"could not extract timestamp from {path!r}: {timestamp!r}"
        raise ExtractionError(msg)
    try:
        # arrow rejects the lower case "t" and "z" which RFC 3339 allows
        return arrow.get(timestamp.upper()), suffix
    except (arrow.ParserError, ValueError) as ex:
        msg = f"could not extract timestamp from {path!r}: {timestamp!r}"
        raise ExtractionError(msg) from ex


class Snapshot(NamedTuple):
    """A subvolume whose name follows the snapshot naming convention."""

    subvolume: Subvolume
    timestamp: arrow.Arrow
    suffix: str

    @classmethod
    def from_subvolume(cls, subvolume: Subvolume) -> Self:
        """Decode the name of a subvolume.

        Raises:
            ExtractionError: If the name doesn't follow the convention.
        """
        timestamp, suffix = decode_snapshot_name(subvolume.btrfs_path)
        return cls(subvolume=subvolume, timestamp=timestamp, suffix=suffix)

    @property
    def btrfs_path(self) -> str:
        return self.subvolume.btrfs_path
