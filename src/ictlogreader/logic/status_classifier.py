# src/ictlogreader/logic/status_classifier.py

from __future__ import annotations

from ictlogreader.code_tables import btest_status_map


def describe_board_status(status: int) -> str:
    """
    @BTEST のテストステータスコードを表示用の文字列にする。

    例:
        0 -> "Pass"
        4 -> "Fail - Shorts"
    コード表に無い値は "Unknown status (<n>)" を返す。
    """
    return btest_status_map().get(str(status), f"Unknown status ({status})")
