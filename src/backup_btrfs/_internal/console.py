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

"""The global rich text console."""

from __future__ import annotations

from rich.console import Console
from rich.style import Style
from rich.theme import Theme

STYLE_PATH = Style.parse("cyan")
STYLE_CREATE = Style.parse("green")
STYLE_DELETE = Style.parse("red")
STYLE_NOT_INCREMENTAL = Style.parse("bold yellow")
STYLE_ERROR = Style.parse("bold bright_red")

THEME = Theme(
    {
        "path": STYLE_PATH,
        "create": STYLE_CREATE,
        "delete": STYLE_DELETE,
        "not_incremental": STYLE_NOT_INCREMENTAL,
        "error": STYLE_ERROR,
    }
)

CONSOLE = Console(theme=THEME)
"""The global rich text console."""
