# src/ictlogreader/logic/result_filter.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from ictlogreader.models.board_log import BoardLog
from ictlogreader.models.ict_test import Outcome, Test


@dataclass
class TestFilterCondition:
    """
    テスト一覧の絞り込み条件。

    - text: テスト名の部分一致（空文字なら条件なし）
    - failed_only: 不合格のテストだけを残す
    - outcome: 指定した結果のテストだけを残す（None なら条件なし）
    """
    __test__ = False

    text: str = ""
    failed_only: bool = False
    outcome: Optional[Outcome] = None

    def is_empty(self) -> bool:
        return not self.text and not self.failed_only and self.outcome is None


def default_condition_for(log: BoardLog) -> TestFilterCondition:
    """不合格の基板を開いたときは、最初から不合格のテストだけを表示する。"""
    return TestFilterCondition(failed_only=log.status != 0)


def match_test(test: Test, cond: TestFilterCondition) -> bool:
    """
    1 件のテストが TestFilterCondition にマッチするか判定する。
    文字列の比較は「部分一致」（in）で行う。
    """
    if cond.text and cond.text not in test.name:
        return False

    if cond.failed_only and test.outcome is not Outcome.FAIL:
        return False

    if cond.outcome is not None and test.outcome is not cond.outcome:
        return False

    return True


def filter_tests(tests: Iterable[Test], cond: TestFilterCondition) -> List[Test]:
    """条件にマッチするテストを元の順序のまま返す。"""
    if cond.is_empty():
        return list(tests)
    return [t for t in tests if match_test(t, cond)]


def format_value(value: Optional[float]) -> str:
    """
    測定値・リミットの表示用フォーマット。None は空文字。

    例:
        1000.0 -> "+1.0000E+03"
    """
    if value is None:
        return ""
    return f"{value:+.4E}"
