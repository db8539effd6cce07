# src/ictlogreader/models/tree_node.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterator, List

from ictlogreader.models.log_record import Record


@dataclass
class TreeNode:
    """
    ログツリーの1ノード。レコード1件と、その子ノード（ファイル順）を持つ。
    親 → 子 の一方向のみで、子から親への参照は持たない。
    """
    line_no: int
    record: Record
    branches: List[TreeNode] = field(default_factory=list)

    def walk(self) -> Iterator[TreeNode]:
        """自分自身を含め、配下のノードを深さ優先（ファイル順）で返す。"""
        yield self
        for child in self.branches:
            yield from child.walk()
