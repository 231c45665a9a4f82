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

"""ISO 8601 durations, as used in retention policies.

Durations may have calendar components (years, months), so their length
depends on the point in time they are measured from. Retention policies
measure them backwards from the current time.
"""

from __future__ import annotations

import re
from typing import cast
from typing import Literal
from typing import overload
from typing import TYPE_CHECKING
from typing import TypedDict

if TYPE_CHECKING:
    from collections.abc import Collection
    from datetime import timedelta

    import arrow
    from typing_extensions import TypeAlias
    from typing_extensions import Unpack


class Kwargs(TypedDict, total=False):
    years: int
    months: int
    weeks: int
    days: int
    hours: int
    minutes: int
    seconds: int


Key: TypeAlias = Literal[
    "years", "months", "weeks", "days", "hours", "minutes", "seconds"
]
KEYS: Collection[Key] = (
    "years",
    "months",
    "weeks",
    "days",
    "hours",
    "minutes",
    "seconds",
)

_INVALID = "Not a valid ISO 8601 duration"

_REGEX = re.compile(
    r"^P((?!$)"
    r"((?P<years>\d+)Y)?"
    r"((?P<months>\d+)M)?"
    r"((?P<days>\d+)D)?"
    r"(T(?!$)"
    r"((?P<hours>\d+)H)?"
    r"((?P<minutes>\d+)M)?"
    r"((?P<seconds>\d+)S)?"
    r")?|(?P<weeks>\d+)W)$"
)


class Duration(dict[Key, int]):
    """An ISO 8601 duration, like "PT15M", "P1D" or "P1Y6M".

    Week durations ("P2W") can't be combined with other components.
    """

    @overload
    def __init__(self, /, value: str) -> None: ...
    @overload
    def __init__(self, **kwargs: Unpack[Kwargs]) -> None: ...
    def __init__(self, value: str | None = None, **kwargs: Unpack[Kwargs]) -> None:
        if value is not None:
            m = _REGEX.match(value)
            if not m:
                raise ValueError(_INVALID)
            kwargs = Kwargs()
            for key in KEYS:
                if (v := m.group(key)) is not None:
                    kwargs[key] = int(v)
        for key, v in kwargs.items():
            if key not in KEYS or not isinstance(v, int) or v < 0:
                raise ValueError(_INVALID)
        super().__init__(cast("dict[Key, int]", kwargs))

    def __str__(self) -> str:
        parts = ["P"]
        for key, unit in (("years", "Y"), ("months", "M"), ("weeks", "W")):
            if (v := self.get(key)) is not None:
                parts.extend((str(v), unit))
        if (v := self.get("days")) is not None:
            parts.extend((str(v), "D"))
        if any(key in self for key in ("hours", "minutes", "seconds")):
            parts.append("T")
        for key, unit in (("hours", "H"), ("minutes", "M"), ("seconds", "S")):
            if (v := self.get(key)) is not None:
                parts.extend((str(v), unit))
        return "".join(parts)

    def kwargs(self) -> Kwargs:
        return cast("Kwargs", self)

    def before(self, now: arrow.Arrow) -> arrow.Arrow:
        """Returns the time this duration before now.

        Raises:
            ValueError: If the result isn't a representable time.
            OverflowError: If a component is too large.
        """
        return now.shift(**{key: -v for key, v in self.items()})

    def length_before(self, now: arrow.Arrow) -> timedelta:
        """Returns the length of this duration, measured backwards from now."""
        return now - self.before(now)
