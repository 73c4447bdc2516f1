"""Watch modes: which state is queried and which events trigger a re-query."""

from __future__ import annotations

from enum import Enum
from typing import FrozenSet, List

from hyprwatch.errors import ConfigError

__all__ = ["WatchMode"]

ACTIVE_WINDOW_CMD = "j/activewindow"
ACTIVE_WORKSPACE_CMD = "j/activeworkspace"
WORKSPACES_CMD = "j/workspaces"


class WatchMode(Enum):
    """The piece of Hyprland state being watched.

    Each member carries the control socket command sent to fetch the state and
    the set of event names that make the state stale.
    """

    ACTIVE_WINDOW = ("active-window", ACTIVE_WINDOW_CMD, frozenset({"activewindow", "windowtitle"}))
    ACTIVE_WORKSPACE = ("active-workspace", ACTIVE_WORKSPACE_CMD, frozenset({"workspace", "activewindow"}))
    WORKSPACES = ("workspaces", WORKSPACES_CMD, frozenset({"createworkspace", "destroyworkspace"}))

    def __init__(self, cli_name: str, query: str, triggers: FrozenSet[str]) -> None:
        self.cli_name = cli_name
        self.query = query
        self.triggers = triggers

    def is_trigger(self, event_name: str) -> bool:
        return event_name in self.triggers

    @classmethod
    def choices(cls) -> List[str]:
        return [mode.cli_name for mode in cls]

    @classmethod
    def from_name(cls, name: str) -> WatchMode:
        """Resolve a mode from its CLI name.

        Matching is case-insensitive and accepts underscores in place of
        hyphens, so ``active_window`` and ``ACTIVE-WINDOW`` both work.

        Raises:
            ConfigError: If the name matches no mode.
        """
        normalized = str(name).strip().lower().replace("_", "-")
        for mode in cls:
            if mode.cli_name == normalized:
                return mode
        raise ConfigError(
            f"Unknown watch mode '{name}'. Expected one of: {', '.join(cls.choices())}"
        )

    def __str__(self) -> str:
        return self.cli_name
