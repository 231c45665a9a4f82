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

import pytest

from backup_btrfs._internal.errors import PathConversionError
from backup_btrfs._internal.mounts import MountInformation
from backup_btrfs._internal.mounts import to_fs_path


def _mount(
    root: str, mount_point: str, device: str = "/dev/sda", fs_type: str = "btrfs"
) -> MountInformation:
    return MountInformation(
        device=device, root=root, mount_point=mount_point, fs_type=fs_type
    )


def test_translate() -> None:
    mounts = [_mount("/test", "/mount/point"), _mount("/test2", "/mount/point")]
    assert (
        to_fs_path(mounts, "/dev/sda", "/test/some/other/path")
        == "/mount/point/some/other/path"
    )


@pytest.mark.parametrize("reverse", [False, True])
def test_longest_prefix_wins(reverse: bool) -> None:  # noqa: FBT001
    mounts = [_mount("/", "/mnt/top"), _mount("/sub", "/mnt/sub")]
    if reverse:
        mounts.reverse()
    assert to_fs_path(mounts, "/dev/sda", "/sub/x") == "/mnt/sub/x"
    assert to_fs_path(mounts, "/dev/sda", "/other/x") == "/mnt/top/other/x"


def test_first_wins_on_equal_roots() -> None:
    mounts = [_mount("/sub", "/mnt/a"), _mount("/sub", "/mnt/b")]
    assert to_fs_path(mounts, "/dev/sda", "/sub/x") == "/mnt/a/x"


def test_root_must_be_whole_components() -> None:
    mounts = [_mount("/", "/mnt/top"), _mount("/sub", "/mnt/sub")]
    assert to_fs_path(mounts, "/dev/sda", "/subvolume") == "/mnt/top/subvolume"


def test_path_equal_to_root() -> None:
    mounts = [_mount("/home", "/home")]
    assert to_fs_path(mounts, "/dev/sda", "/home") == "/home"


def test_other_devices_and_fs_types_are_ignored() -> None:
    mounts = [
        _mount("/", "/wrong/device", device="/dev/sdb"),
        _mount("/", "/wrong/type", fs_type="ext4"),
        _mount("/", "/right"),
    ]
    assert to_fs_path(mounts, "/dev/sda", "/x") == "/right/x"


def test_device_aliases() -> None:
    mounts = [_mount("/", "/data", device="/dev/dm-3")]
    devices = ["/dev/disk/by-uuid/5e3c62a8", "/dev/dm-3"]
    assert to_fs_path(mounts, devices, "/backups/x") == "/data/backups/x"


def test_no_match() -> None:
    mounts = [_mount("/test", "/mount/point")]
    with pytest.raises(PathConversionError):
        to_fs_path(mounts, "/dev/sda", "/other")


def test_no_mounts() -> None:
    with pytest.raises(PathConversionError):
        to_fs_path([], "/dev/sda", "/")
