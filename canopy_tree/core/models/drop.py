from __future__ import annotations

"""Drop descriptors produced by drag gesture sources."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

__all__ = ["DropZone", "DropTarget"]


class DropZone(str, Enum):
    ONTO = "onto"
    BEFORE = "before"
    AFTER = "after"


# Gesture sources address the "onto" zone as "folder" in their droppable ids.
_ZONE_ALIASES = {
    "onto": DropZone.ONTO,
    "folder": DropZone.ONTO,
    "before": DropZone.BEFORE,
    "after": DropZone.AFTER,
}


@dataclass(frozen=True)
class DropTarget:
    """Where a dragged node should land relative to ``target_id``."""

    zone: DropZone
    target_id: str

    @classmethod
    def parse(cls, token: str) -> Optional["DropTarget"]:
        """Parse a ``drop:<zone>:<target_id>`` token, or return None.

        >>> DropTarget.parse("drop:after:root-1")
        DropTarget(zone=<DropZone.AFTER: 'after'>, target_id='root-1')
        """
        if not isinstance(token, str):
            return None
        parts = token.split(":", 2)
        if len(parts) != 3 or parts[0] != "drop" or not parts[2]:
            return None
        zone = _ZONE_ALIASES.get(parts[1])
        if zone is None:
            return None
        return cls(zone, parts[2])

    def to_token(self) -> str:
        return f"drop:{self.zone.value}:{self.target_id}"
