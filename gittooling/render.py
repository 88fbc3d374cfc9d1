"""
Terminal output themes.

A Theme is chosen once (config or --theme) and handed to whatever prints;
nothing reads a module-level current theme.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import click


@dataclass(frozen=True)
class Theme:
    """click.style keyword sets per UI element."""
    name: str
    header: dict[str, Any] = field(default_factory=dict)
    divider: dict[str, Any] = field(default_factory=dict)
    muted: dict[str, Any] = field(default_factory=dict)
    accent: dict[str, Any] = field(default_factory=dict)

    def style_header(self, text: str) -> str:
        return click.style(text, **self.header)

    def style_divider(self, text: str) -> str:
        return click.style(text, **self.divider)

    def style_muted(self, text: str) -> str:
        return click.style(text, **self.muted)

    def style_accent(self, text: str) -> str:
        return click.style(text, **self.accent)


THEMES = {
    "original": Theme(
        name="original",
        header={"bold": True, "underline": True},
        divider={"bold": True, "fg": "bright_black"},
        muted={"fg": "bright_black"},
        accent={"fg": "magenta"},
    ),
    "monokai": Theme(
        name="monokai",
        header={"bold": True, "fg": (249, 38, 114)},
        divider={"bold": True, "fg": (166, 226, 46)},
        muted={"fg": "bright_black"},
        accent={"fg": (174, 129, 255)},
    ),
    "gruvbox": Theme(
        name="gruvbox",
        header={"bold": True, "fg": (254, 128, 25)},
        divider={"bold": True, "fg": (69, 133, 136)},
        muted={"fg": "bright_black"},
        accent={"fg": (142, 192, 124)},
    ),
    "nord": Theme(
        name="nord",
        header={"bold": True, "fg": (94, 129, 172)},
        divider={"bold": True, "fg": (136, 192, 208)},
        muted={"fg": (76, 86, 106)},
        accent={"fg": (180, 142, 173)},
    ),
    "monochrome": Theme(
        name="monochrome",
        header={"bold": True, "reverse": True},
        divider={"dim": True},
        muted={"dim": True},
        accent={"bold": True},
    ),
}

DEFAULT_THEME = "nord"


def get_theme(name: str | None) -> Theme:
    """Look up a theme by name; unknown names raise KeyError."""
    return THEMES[name or DEFAULT_THEME]
