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

"""Selection of the parent for an incremental send."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from backup_btrfs._internal.subvolumes import Subvolume

_LOG = logging.getLogger(__name__)


def find_common_parent(
    local_snapshots: Iterable[Subvolume], remote_snapshots: Iterable[Subvolume]
) -> Subvolume | None:
    """Find the most recent snapshot that exists on both sides.

    A remote snapshot is a copy of a local snapshot if its received_uuid is
    the local snapshot's uuid. Among the remote snapshots which have a local
    counterpart, the one with the greatest btrfs_path is chosen. With the
    default naming convention, this is the most recent one.

    Args:
        local_snapshots: The local snapshots of the subvolume being backed up.
        remote_snapshots: The received subvolumes on the remote side.

    Returns:
        The local counterpart of the chosen remote snapshot, or None if no
        remote snapshot has a local counterpart (a full send is required).
    """
    uuid_to_local: dict[UUID, Subvolume] = {s.uuid: s for s in local_snapshots}
    candidates = sorted(
        (
            s
            for s in remote_snapshots
            if s.received_uuid is not None and s.received_uuid in uuid_to_local
        ),
        key=lambda s: s.btrfs_path,
    )
    if not candidates:
        _LOG.debug("no remote snapshot has a local counterpart")
        return None
    remote = candidates[-1]
    assert remote.received_uuid is not None
    local = uuid_to_local[remote.received_uuid]
    _LOG.debug("common parent: %s (remote: %s)", local.btrfs_path, remote.btrfs_path)
    return local
