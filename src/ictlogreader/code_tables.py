# src/ictlogreader/code_tables.py

from __future__ import annotations

import json
from functools import lru_cache
from importlib import resources
from typing import Dict

# dataフォルダ内のファイル名対応表
_TABLE_FILES: Dict[str, str] = {
    "btest_status": "btest_status.json",
}


@lru_cache(maxsize=None)
def load_code_table(table_name: str) -> Dict[str, str]:
    """
    コード表の JSON（{"code": "label", ...}）を読み込み、コード→ラベルの dict を返す。

    - table_name: "btest_status" など
    - JSON は ictlogreader/data/ 以下に配置する
    読み込み結果はプロセス内でキャッシュし、呼び出し側では書き換えない前提。
    """
    if table_name not in _TABLE_FILES:
        raise KeyError(f"Unknown table name: {table_name}")

    filename = _TABLE_FILES[table_name]
    with resources.files("ictlogreader.data").joinpath(filename).open(
        "r", encoding="utf-8"
    ) as f:
        raw = json.load(f)

    if not isinstance(raw, dict):
        raise ValueError(f"Unsupported JSON format in {filename} (expected dict)")

    # キーは文字列化して統一（"04" と 4 を同じコードとして扱う）
    return {str(int(k)) if str(k).isdigit() else str(k): str(v) for k, v in raw.items()}


def btest_status_map() -> Dict[str, str]:
    """@BTEST のテストステータスコード → 表示用ラベル"""
    return load_code_table("btest_status")
