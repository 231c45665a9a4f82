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

from backup_btrfs._internal.durations import Duration
from backup_btrfs._internal.durations import Kwargs


@pytest.mark.parametrize("value", ["invalid", "P", "P1DT", "P1W2D", "PT15", "1D", "P-1D"])
def test_malformed(value: str) -> None:
    with pytest.raises(ValueError, match="Not a valid ISO 8601 duration"):
        Duration(value)


def test_negative_kwargs() -> None:
    with pytest.raises(ValueError, match="Not a valid ISO 8601 duration"):
        Duration(days=-1)


@pytest.mark.parametrize(
    ("value", "result"),
    [
        (
            "P1Y2M3DT4H5M6S",
            Duration(years=1, months=2, days=3, hours=4, minutes=5, seconds=6),
        ),
        ("P52W", Duration(weeks=52)),
        ("PT15M", Duration(minutes=15)),
        ("P1M", Duration(months=1)),
    ],
)
def test_valid_parse_and_str(value: str, result: Duration) -> None:
    assert Duration(value) == result
    assert str(Duration(value)) == value


def test_kwargs() -> None:
    assert Duration("P1DT2H").kwargs() == Kwargs(days=1, hours=2)
