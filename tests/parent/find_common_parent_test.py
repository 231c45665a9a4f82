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

from __future__ import annotations

from uuid import UUID

from backup_btrfs._internal.parent import find_common_parent
from backup_btrfs._internal.subvolumes import Subvolume

SOURCE_UUID = UUID("5f0b151b-52e4-4445-aa94-d07056733a1f")


def _local(name: str, uuid: int) -> Subvolume:
    return Subvolume(
        btrfs_path=f"/snapshots/{name}", uuid=UUID(int=uuid), parent_uuid=SOURCE_UUID
    )


def _remote(name: str, uuid: int, received: int) -> Subvolume:
    return Subvolume(
        btrfs_path=f"/backups/{name}",
        uuid=UUID(int=uuid),
        received_uuid=UUID(int=received),
    )


def test_single_match() -> None:
    local = _local("2021-05-02T07:40:32Z_inf_btrfs_test", 1)
    remote = _remote("2021-05-02T07:40:32Z_inf_btrfs_test", 100, received=1)
    assert find_common_parent([local], [remote]) == local


def test_no_match() -> None:
    local = _local("2021-05-02T07:40:32Z_inf_btrfs_test", 2)
    remote = _remote("2021-05-02T07:40:32Z_inf_btrfs_test", 100, received=1)
    assert find_common_parent([local], [remote]) is None


def test_empty() -> None:
    assert find_common_parent([], []) is None
    assert find_common_parent([_local("a", 1)], []) is None


def test_greatest_remote_path_wins() -> None:
    old = _local("2021-05-02T07:40:32Z_home", 1)
    new = _local("2021-05-03T07:40:32Z_home", 2)
    unsent = _local("2021-05-04T07:40:32Z_home", 3)
    remote = [
        _remote("2021-05-03T07:40:32Z_home", 101, received=2),
        _remote("2021-05-02T07:40:32Z_home", 100, received=1),
        # a copy of a snapshot which no longer exists locally
        _remote("2021-05-05T07:40:32Z_home", 102, received=50),
    ]
    assert find_common_parent([unsent, old, new], remote) == new


def test_remote_without_received_uuid_is_ignored() -> None:
    local = _local("a", 1)
    remote = Subvolume(btrfs_path="/backups/z", uuid=UUID(int=1))
    assert find_common_parent([local], [remote]) is None
