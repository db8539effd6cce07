# src/ictlogreader/log_loader.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import chardet

from ictlogreader.logic.log_interpreter import LogInterpreter
from ictlogreader.models.board_log import BoardLog
from ictlogreader.parser.record_parser import parse_log_text
from ictlogreader.parser.tree_builder import build_tree

logger = logging.getLogger(__name__)

# chardet の判定がこれより低ければ採用しない
MIN_DETECT_CONFIDENCE = 0.5
FALLBACK_ENCODING = "latin-1"


class LogLoadError(OSError):
    """ログファイル自体が読めなかった場合のエラー（読み込み処理として唯一の致命的エラー）。"""

    def __init__(self, path: Path, reason: str) -> None:
        super().__init__(f"Failed to load log file {path}: {reason}")
        self.path = path


def decode_log_bytes(raw: bytes) -> str:
    """
    ログのバイト列をテキスト化するヘルパ。

    - まず UTF-8（BOM 付きも可）として厳密にデコード
    - だめなら chardet で推定したエンコーディングを試す
    - 最後の保険: latin-1 で置換しながら読む
    """
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError:
        pass

    guess = chardet.detect(raw)
    encoding = guess.get("encoding")
    confidence = guess.get("confidence") or 0.0
    if encoding and confidence >= MIN_DETECT_CONFIDENCE:
        try:
            return raw.decode(encoding)
        except (UnicodeDecodeError, LookupError):
            logger.debug("detected encoding %s failed, falling back", encoding)

    return raw.decode(FALLBACK_ENCODING, errors="replace")


def load_log_file(path: Union[str, Path]) -> BoardLog:
    """
    ICT ログファイルを読み込み、正規化済みの BoardLog を返す。

    ファイルが読めない場合だけ LogLoadError を送出する。
    中身の不備は BoardLog.warnings / errors に記録されるだけで、読み込みは続行する。
    """
    path = Path(path)
    logger.info("Loading file %s", path)

    try:
        raw = path.read_bytes()
        mtime = path.stat().st_mtime
    except OSError as e:
        raise LogLoadError(path, str(e)) from e

    text = decode_log_bytes(raw)
    lines = parse_log_text(text)
    forest = build_tree(lines)

    return LogInterpreter().interpret(forest, path, modified_time=mtime)
