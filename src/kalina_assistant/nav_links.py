"""In-app navigation links embedded in assistant answers.

Answers reference dashboard pages inline as ``[Link text](nav:/path#view)``;
the view fragment is optional. Front ends turn these into in-app links.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

NAV_LINK_PATTERN = re.compile(r"\[([^\]]+)\]\(nav:([^)#\s]+)(?:#([^)\s]+))?\)")


@dataclass(frozen=True)
class NavLink:
    text: str
    path: str
    view: str | None = None

    @property
    def target(self) -> str:
        return f"{self.path}#{self.view}" if self.view else self.path

    def to_markup(self) -> str:
        return f"[{self.text}](nav:{self.target})"


def parse_nav_links(text: str) -> list[NavLink]:
    return [NavLink(m.group(1), m.group(2), m.group(3)) for m in NAV_LINK_PATTERN.finditer(text)]


def render_for_terminal(text: str) -> str:
    def _replace(match: re.Match) -> str:
        link = NavLink(match.group(1), match.group(2), match.group(3))
        return f"{link.text} ({link.target})"

    return NAV_LINK_PATTERN.sub(_replace, text)
