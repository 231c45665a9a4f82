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

"""The btrfs commands used by a backup cycle.

These build command lines for an Executor and parse their output. btrfs
commands are run with sudo inside their context, so the context's user only
needs permission to run btrfs as root.
"""

from __future__ import annotations

import logging
import os
from pathlib import PurePosixPath
import posixpath
from typing import TYPE_CHECKING

from backup_btrfs._internal.errors import DeleteRefusedError
from backup_btrfs._internal.executor import Local
from backup_btrfs._internal.executor import Stage
from backup_btrfs._internal.mounts import FINDMNT_COLUMNS
from backup_btrfs._internal.mounts import FS_TYPE
from backup_btrfs._internal.mounts import parse_findmnt
from backup_btrfs._internal.naming import encode_snapshot_name
from backup_btrfs._internal.subvolumes import parse_subvolume_list
from backup_btrfs._internal.subvolumes import parse_subvolume_show

if TYPE_CHECKING:
    import arrow

    from backup_btrfs._internal.executor import ExecutionContext
    from backup_btrfs._internal.executor import Executor
    from backup_btrfs._internal.mounts import MountInformation
    from backup_btrfs._internal.subvolumes import Subvolume
    from backup_btrfs._internal.subvolumes import SubvolumeInfo

_LOG = logging.getLogger(__name__)

_SUDO = "sudo"
_BTRFS = "btrfs"

PROTECTED_PATHS = frozenset(("home", "/home", "root", "/"))
"""Paths which are never deleted, even if asked to."""


def get_subvolumes(
    executor: Executor, context: ExecutionContext, path: str
) -> list[Subvolume]:
    """List every subvolume of the filesystem containing a path."""
    output = executor.run(
        _SUDO,
        [_BTRFS, "subvolume", "list", "-tupqR", "--sort=rootid", path],
        context,
    )
    return parse_subvolume_list(output)


def get_subvolume_info(
    executor: Executor, context: ExecutionContext, path: str
) -> SubvolumeInfo:
    output = executor.run(_SUDO, [_BTRFS, "subvolume", "show", path], context)
    return parse_subvolume_show(output, path)


def get_mount_information(
    executor: Executor, context: ExecutionContext
) -> list[MountInformation]:
    """List the mounted btrfs filesystems."""
    output = executor.run(
        "findmnt", ["-lnvt", FS_TYPE, "-o", ",".join(FINDMNT_COLUMNS)], context
    )
    return parse_findmnt(output)


def read_link(executor: Executor, context: ExecutionContext, path: str) -> list[str]:
    """Returns the names of a path.

    This is the path itself, plus the target it resolves to if it is a
    symlink (like the entries of /dev/disk/by-uuid).
    """
    target = executor.run("readlink", ["-f", path], context).strip()
    if not target or target == path:
        return [path]
    return [path, target]


def snapshot_subvolume(
    executor: Executor,
    context: ExecutionContext,
    *,
    subvolume_path: str,
    snapshot_path: str,
    suffix: str,
    timestamp: arrow.Arrow,
) -> str:
    """Create a read-only snapshot of a subvolume.

    Args:
        executor: The executor.
        context: Where to run the command.
        subvolume_path: The OS path of the subvolume.
        snapshot_path: The OS path of the directory to create the snapshot in.
        suffix: The snapshot suffix.
        timestamp: The creation time recorded in the snapshot's name.

    Returns:
        The OS path of the new snapshot.
    """
    name = encode_snapshot_name(timestamp, suffix)
    path = str(PurePosixPath(snapshot_path) / name)
    _LOG.info("creating snapshot %s of %s", path, subvolume_path)
    executor.run(
        _SUDO, [_BTRFS, "subvolume", "snapshot", "-r", subvolume_path, path], context
    )
    return path


def send_snapshot(
    executor: Executor,
    *,
    snapshot_path: str,
    parent_path: str | None,
    context_local: ExecutionContext,
    backup_path: str,
    context_remote: ExecutionContext,
) -> None:
    """Send a snapshot and receive it into backup_path.

    If parent_path is given, only the difference to the parent is sent. The
    parent must already exist on the receiving side.
    """
    send_args = [_BTRFS, "send"]
    if parent_path is not None:
        send_args.extend(("-p", parent_path))
    send_args.append(snapshot_path)
    if parent_path is None:
        _LOG.info("sending %s (full)", snapshot_path)
    else:
        _LOG.info("sending %s (incremental from %s)", snapshot_path, parent_path)
    executor.run_piped(
        [
            Stage(program=_SUDO, args=send_args, context=context_local),
            Stage(
                program=_SUDO,
                args=[_BTRFS, "receive", backup_path],
                context=context_remote,
            ),
        ]
    )


def delete_subvolume(
    executor: Executor, context: ExecutionContext, path: str
) -> None:
    """Delete a subvolume.

    Raises:
        DeleteRefusedError: If the path is one of PROTECTED_PATHS, after
            symlinks (for local paths) and ".." components are resolved.
    """
    if isinstance(context, Local):
        canonical = os.path.realpath(path)
    else:
        canonical = posixpath.normpath(path)
    if canonical in PROTECTED_PATHS:
        msg = f"refusing to delete {path} ({canonical})"
        raise DeleteRefusedError(msg)
    _LOG.info("deleting %s", canonical)
    executor.run(_SUDO, [_BTRFS, "subvolume", "delete", canonical], context)
