# src/ictlogreader/models/log_line.py

from __future__ import annotations
from dataclasses import dataclass

from ictlogreader.models.log_record import Record


@dataclass
class LogLine:
    """
    ICT ログファイルの1行分を表すモデル。

    - line_no: 元ファイル上の行番号（1始まり）
    - raw: 1行丸ごとの生テキスト
    - record: 行を分類・型変換した結果のレコード
    """
    line_no: int
    raw: str
    record: Record
