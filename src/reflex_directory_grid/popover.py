"""Open/closed state of the grid's filter dropdowns.

Each filter control owns one popover that is either closed or open.  A
single outside-click observer dismisses whatever is open, so the manager
is the only place that knows which dropdown is showing.
"""

from dataclasses import dataclass, field


@dataclass
class PopoverManager:
    """Track which filter popovers are open.

    Attributes:
        exclusive: When True (default) opening one popover closes the others.
    """

    exclusive: bool = True
    _open: set[str] = field(default_factory=set)

    def is_open(self, name: str) -> bool:
        return name in self._open

    @property
    def open_names(self) -> list[str]:
        return sorted(self._open)

    def open(self, name: str) -> None:
        if self.exclusive:
            self._open.clear()
        self._open.add(name)

    def close(self, name: str) -> None:
        self._open.discard(name)

    def toggle(self, name: str) -> bool:
        """Flip *name* and return whether it is now open."""
        if self.is_open(name):
            self.close(name)
            return False
        self.open(name)
        return True

    def dismiss_all(self) -> list[str]:
        """Outside click: close every open popover and return their names."""
        closed = self.open_names
        self._open.clear()
        return closed
