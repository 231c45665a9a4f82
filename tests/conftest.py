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

from typing import TYPE_CHECKING

import pytest

from backup_btrfs._internal.executor import Executor

if TYPE_CHECKING:
    from collections.abc import Callable
    from collections.abc import Iterable
    from collections.abc import Sequence
    from uuid import UUID

    from backup_btrfs._internal.executor import Stage
    from backup_btrfs._internal.subvolumes import Subvolume

LIST_HEADER = (
    "ID      gen     parent  top level       parent_uuid     received_uuid   "
    "uuid    path"
)
LIST_SEPARATOR = (
    "--      ---     ------  ---------       -----------     -------------   "
    "----    ----"
)


def make_subvolume_list(subvolumes: Iterable[Subvolume]) -> str:
    """Returns output like `btrfs subvolume list -tupqR` for the subvolumes."""
    lines = [LIST_HEADER, LIST_SEPARATOR]
    for rootid, subvolume in enumerate(subvolumes, 256):
        lines.append(
            f"{rootid}     1000    5       5               "
            f"{subvolume.parent_uuid or '-'}    "
            f"{subvolume.received_uuid or '-'}    "
            f"{subvolume.uuid}    {subvolume.btrfs_path.lstrip('/')}"
        )
    return "\n".join(lines) + "\n"


def make_subvolume_show(btrfs_path: str, uuid: UUID) -> str:
    """Returns output like `btrfs subvolume show` for a subvolume."""
    return (
        f"{btrfs_path.lstrip('/') or '/'}\n"
        f"\tName: \t\t\t{btrfs_path.rsplit('/', 1)[-1]}\n"
        f"\tUUID: \t\t\t{uuid}\n"
        "\tParent UUID: \t\t-\n"
        "\tReceived UUID: \t\t-\n"
        "\tCreation time: \t\t2021-04-02 05:53:59 +0200\n"
        "\tSubvolume ID: \t\t256\n"
    )


class FakeExecutor(Executor):
    """An Executor which records commands instead of running them.

    The output of a pipeline is computed by respond() from its last stage.
    """

    def __init__(self, respond: Callable[[Stage], str] | None = None) -> None:
        self.pipelines: list[list[Stage]] = []
        self._respond = respond

    def run_piped(self, stages: Sequence[Stage]) -> str:
        self.pipelines.append(list(stages))
        if self._respond is None:
            return ""
        return self._respond(stages[-1])

    @property
    def commands(self) -> list[tuple[str, list[str]]]:
        return [
            (stage.program, list(stage.args))
            for pipeline in self.pipelines
            for stage in pipeline
        ]


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()
