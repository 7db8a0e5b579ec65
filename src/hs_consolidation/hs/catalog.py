# hs/catalog.py

from __future__ import annotations
from typing import Dict, Iterable, List, Optional

from ..models import HSCodeNode, HSLevel, normalize_hs_code


class HSCatalog:
    """
    Read-only index over HS nodes: lookup by code and one-level-down
    navigation (chapter → headings → subheadings).
    """

    def __init__(self, nodes: Iterable[HSCodeNode]):
        self._nodes: Dict[str, HSCodeNode] = {}
        self._children: Dict[str, List[str]] = {}
        for node in sorted(nodes, key=lambda n: n.code):
            self._nodes[node.code] = node
            self._children.setdefault(node.code, [])
            if node.parent is not None:
                self._children.setdefault(node.parent, []).append(node.code)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, code: str) -> bool:
        return normalize_hs_code(code) in self._nodes

    def get(self, code: str) -> Optional[HSCodeNode]:
        return self._nodes.get(normalize_hs_code(code))

    def children(self, code: str) -> List[HSCodeNode]:
        return [self._nodes[c] for c in self._children.get(normalize_hs_code(code), [])]

    def nodes(self, level: Optional[HSLevel] = None) -> List[HSCodeNode]:
        if level is None:
            return list(self._nodes.values())
        return [n for n in self._nodes.values() if n.level == level]

    def chapters(self) -> List[HSCodeNode]:
        return self.nodes(HSLevel.chapter)

    def headings(self, chapter: Optional[str] = None) -> List[HSCodeNode]:
        if chapter is not None:
            return self.children(chapter)
        return self.nodes(HSLevel.heading)

    def subheadings(self, heading: Optional[str] = None) -> List[HSCodeNode]:
        if heading is not None:
            return self.children(heading)
        return self.nodes(HSLevel.subheading)
