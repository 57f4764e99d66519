from __future__ import annotations

"""Node kind capabilities.

A node kind tells the generic engine how to label a node from its opaque
``fields`` payload. Forests are instantiated once per kind; the structural
algorithms never branch on the kind itself.
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple

__all__ = ["NodeKind", "FOLDER_KIND", "BOOK_KIND", "register_kind", "get_kind"]


@dataclass(frozen=True)
class NodeKind:
    """Display capability of a node kind.

    Attributes
    ----------
    name
        Kind identifier stored on every node and forest.
    label_fields
        Field names joined to build the label; the first one is the main text,
        the remaining ones are shown in parentheses.
    """

    name: str
    label_fields: Tuple[str, ...] = ("name",)

    def label_for(self, fields: Mapping[str, Any]) -> str:
        if not fields:
            return ""
        main = str(fields.get(self.label_fields[0], "") or "")
        extras = [str(fields[f]) for f in self.label_fields[1:] if fields.get(f)]
        if extras:
            return f"{main} ({', '.join(extras)})"
        return main


FOLDER_KIND = NodeKind("folder", ("name",))
BOOK_KIND = NodeKind("book", ("title", "author"))

_REGISTRY: Dict[str, NodeKind] = {
    FOLDER_KIND.name: FOLDER_KIND,
    BOOK_KIND.name: BOOK_KIND,
}


def register_kind(kind: NodeKind) -> NodeKind:
    _REGISTRY[kind.name] = kind
    return kind


def get_kind(name: str) -> NodeKind:
    """Return the registered kind, or a name-labelled kind for unknown names."""
    return _REGISTRY.get(name) or NodeKind(name)
