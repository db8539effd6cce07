# src/ictlogreader/models/board_log.py
from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from ictlogreader.logic.timestamp import format_packed
from ictlogreader.models.ict_test import Test

# tests[PIN_TEST_INDEX] には常にピンテストが入る
PIN_TEST_INDEX = 0


@dataclass
class BoardLog:
    """
    ICT ログ1ファイル分の正規化済みモデル。
    ビューワーやエクスポート側はこれだけを参照し、生ファイルは見ない。
    """
    source: Path
    dmc: str
    dmc_mb: str
    product_id: str
    index: int

    status: int
    status_str: str

    time_start: int               # YYMMDDhhmmss
    time_end: int                 # YYMMDDhhmmss

    tests: List[Test] = field(default_factory=list)
    report: str = ""

    failed_nodes: List[str] = field(default_factory=list)
    failed_pins: List[str] = field(default_factory=list)

    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def result(self) -> bool:
        """基板としての合否（status == 0 なら合格）"""
        return self.status == 0

    @property
    def failed_tests(self) -> List[Test]:
        return [t for t in self.tests if t.failed]

    @property
    def has_report(self) -> bool:
        return bool(self.report)

    @property
    def time_start_str(self) -> str:
        return format_packed(self.time_start)

    @property
    def time_end_str(self) -> str:
        return format_packed(self.time_end)
