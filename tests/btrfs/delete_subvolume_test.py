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

import os
from typing import TYPE_CHECKING

import pytest

from backup_btrfs._internal.btrfs import delete_subvolume
from backup_btrfs._internal.errors import DeleteRefusedError
from backup_btrfs._internal.executor import Local
from backup_btrfs._internal.executor import Remote

if TYPE_CHECKING:
    from pathlib import Path

    from tests.conftest import FakeExecutor

LOCAL = Local("test")
REMOTE = Remote(host="host", user="user", identity="/home/test/.ssh/id")


def test_delete(fake_executor: FakeExecutor, tmp_path: Path) -> None:
    delete_subvolume(fake_executor, LOCAL, str(tmp_path / "x" / ".."))
    assert fake_executor.commands == [
        ("sudo", ["btrfs", "subvolume", "delete", os.path.realpath(tmp_path)])
    ]


def test_delete_remote(fake_executor: FakeExecutor) -> None:
    delete_subvolume(fake_executor, REMOTE, "/data/backups/./x")
    assert fake_executor.commands == [
        ("sudo", ["btrfs", "subvolume", "delete", "/data/backups/x"])
    ]


@pytest.mark.parametrize("path", ["/", "/home", "/home/", "/tmp/..", "root", "home"])
@pytest.mark.parametrize("context", [LOCAL, REMOTE])
def test_refuse(
    fake_executor: FakeExecutor, path: str, context: Local | Remote
) -> None:
    if context == LOCAL and path in ("root", "home"):
        pytest.skip("relative paths are resolved against the working directory")
    with pytest.raises(DeleteRefusedError):
        delete_subvolume(fake_executor, context, path)
    assert fake_executor.commands == []


def test_refuse_symlink_to_protected(
    fake_executor: FakeExecutor, tmp_path: Path
) -> None:
    link = tmp_path / "link"
    link.symlink_to("/")
    with pytest.raises(DeleteRefusedError):
        delete_subvolume(fake_executor, LOCAL, str(link))
    assert fake_executor.commands == []
