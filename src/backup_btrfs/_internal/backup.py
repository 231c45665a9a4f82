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

"""One backup cycle: snapshot, send, then prune both sides."""

from __future__ import annotations

import logging
from typing import NamedTuple
from typing import TYPE_CHECKING

from backup_btrfs._internal.btrfs import delete_subvolume
from backup_btrfs._internal.btrfs import get_mount_information
from backup_btrfs._internal.btrfs import get_subvolume_info
from backup_btrfs._internal.btrfs import get_subvolumes
from backup_btrfs._internal.btrfs import read_link
from backup_btrfs._internal.btrfs import send_snapshot
from backup_btrfs._internal.btrfs import snapshot_subvolume
from backup_btrfs._internal.errors import ExtractionError
from backup_btrfs._internal.executor import Local
from backup_btrfs._internal.executor import Remote
from backup_btrfs._internal.mounts import to_fs_path
from backup_btrfs._internal.naming import Snapshot
from backup_btrfs._internal.parent import find_common_parent
from backup_btrfs._internal.retention import find_snapshots_to_delete
from backup_btrfs._internal.retention import policy_from_durations
from backup_btrfs._internal.subvolumes import get_local_snapshots
from backup_btrfs._internal.subvolumes import get_remote_snapshots

if TYPE_CHECKING:
    from collections.abc import Callable
    from collections.abc import Iterable
    from collections.abc import Iterator
    from collections.abc import Sequence
    from datetime import timedelta

    import arrow

    from backup_btrfs._internal.config import Config
    from backup_btrfs._internal.executor import ExecutionContext
    from backup_btrfs._internal.executor import Executor
    from backup_btrfs._internal.mounts import MountInformation
    from backup_btrfs._internal.subvolumes import Subvolume

_LOG = logging.getLogger(__name__)


class BackupResult(NamedTuple):
    """What a backup cycle did.

    Attributes:
        snapshot_path: The OS path of the snapshot created in this cycle.
        parent_path: The OS path of the parent of the incremental send, or
            None if the snapshot was sent in full.
        deleted_local: The OS paths of the deleted local snapshots.
        deleted_remote: The OS paths of the deleted remote snapshots.
    """

    snapshot_path: str
    parent_path: str | None
    deleted_local: list[str]
    deleted_remote: list[str]


def _iter_snapshots(subvolumes: Iterable[Subvolume]) -> Iterator[Snapshot]:
    for subvolume in subvolumes:
        try:
            yield Snapshot.from_subvolume(subvolume)
        except ExtractionError as ex:
            _LOG.warning("ignoring %s: %s", subvolume.btrfs_path, ex)


class _Side(NamedTuple):
    context: ExecutionContext
    devices: Sequence[str]
    mounts: Sequence[MountInformation]


def _prune(
    executor: Executor,
    side: _Side,
    *,
    now: arrow.Arrow,
    policy: Sequence[timedelta],
    snapshots: Iterable[Subvolume],
    suffix: str,
    is_new: Callable[[Subvolume], bool],
) -> list[str]:
    to_delete = find_snapshots_to_delete(
        now=now, policy=policy, snapshots=_iter_snapshots(snapshots), suffix=suffix
    )
    # never delete the snapshot we just created, whichever bucket it's in
    to_delete = [s for s in to_delete if not is_new(s.subvolume)]
    deleted = []
    for snapshot in to_delete:
        path = to_fs_path(side.mounts, side.devices, snapshot.btrfs_path)
        delete_subvolume(executor, side.context, path)
        deleted.append(path)
    return deleted


def run_backup(config: Config, executor: Executor, *, now: arrow.Arrow) -> BackupResult:
    """Run one backup cycle.

    The steps run strictly in order, and the first error aborts the cycle.
    Nothing is rolled back: a snapshot created before an error remains, and
    will be sent by the next cycle.

    Args:
        config: The configuration.
        executor: Runs commands.
        now: The current time. The new snapshot is named with it, and
            retention is computed relative to it.

    Returns:
        A summary of what was done.
    """
    local = Local(user=config["user_local"])
    ssh = config["ssh"]
    remote = Remote(host=ssh["host"], user=ssh["user"], identity=ssh["identity"])
    suffix = config["snapshot_suffix"]
    # fail early on a bad policy, before changing anything
    policy_local = policy_from_durations(config["policy_local"], now=now)
    policy_remote = policy_from_durations(config["policy_remote"], now=now)

    source = get_subvolume_info(executor, local, config["source_subvolume_path"])
    snapshot_path = snapshot_subvolume(
        executor,
        local,
        subvolume_path=config["source_subvolume_path"],
        snapshot_path=config["snapshot_path"],
        suffix=suffix,
        timestamp=now,
    )
    snapshot = get_subvolume_info(executor, local, snapshot_path)

    local_side = _Side(
        context=local,
        devices=read_link(executor, local, config["snapshot_device"]),
        mounts=get_mount_information(executor, local),
    )
    remote_side = _Side(
        context=remote,
        devices=read_link(executor, remote, config["backup_device"]),
        mounts=get_mount_information(executor, remote),
    )

    def list_local() -> list[Subvolume]:
        return get_local_snapshots(
            source.uuid,
            get_subvolumes(executor, local, config["snapshot_subvolume_path"]),
        )

    def list_remote() -> list[Subvolume]:
        return get_remote_snapshots(
            get_subvolumes(executor, remote, config["backup_subvolume_path"])
        )

    parent = find_common_parent(list_local(), list_remote())
    parent_path = (
        None
        if parent is None
        else to_fs_path(local_side.mounts, local_side.devices, parent.btrfs_path)
    )
    send_snapshot(
        executor,
        snapshot_path=snapshot_path,
        parent_path=parent_path,
        context_local=local,
        backup_path=config["backup_path"],
        context_remote=remote,
    )

    deleted_local = _prune(
        executor,
        local_side,
        now=now,
        policy=policy_local,
        snapshots=list_local(),
        suffix=suffix,
        is_new=lambda s: s.uuid == snapshot.uuid,
    )
    deleted_remote = _prune(
        executor,
        remote_side,
        now=now,
        policy=policy_remote,
        snapshots=list_remote(),
        suffix=suffix,
        is_new=lambda s: s.received_uuid == snapshot.uuid,
    )
    _LOG.info(
        "backup complete: deleted %d local and %d remote snapshots",
        len(deleted_local),
        len(deleted_remote),
    )
    return BackupResult(
        snapshot_path=snapshot_path,
        parent_path=parent_path,
        deleted_local=deleted_local,
        deleted_remote=deleted_remote,
    )
