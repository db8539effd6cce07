from datetime import datetime
from pathlib import Path

import pytest

from ictlogreader.logic.log_interpreter import LogInterpreter
from ictlogreader.parser.record_parser import parse_log_text
from ictlogreader.parser.tree_builder import build_tree

BATCH_LINE = "{@BATCH|PRODUCT-A|REV2|FIX01|1|3070|ICT|B123|OP7|ctl1|TP-A|3|PANEL-A|1"
BTEST_LINE = "{@BTEST|DMC0001|04|240115143000|000042|0|all|default|n|n|240115143042|00|2|MB0001"

SAMPLE_LOG = "\n".join([
    BATCH_LINE,
    BTEST_LINE,
    "{@PF|pins|0|120",
    "}",
    "{@TS|0|1|0|0|shorts",
    "{@TS-S|1|0|GND",
    "{@TS-D|VCC|+1.5E+00",
    "}}",
    "{@BLOCK|17%c617|00",
    "{@A-CAP|0|+1.02E-07|c617",
    "{@LIM3|+1.0E-07|+1.2E-07|+8.0E-08}}",
    "}",
    "{@BLOCK|18%r12|01",
    "{@A-RES|1|+5.9E+00",
    "{@LIM2|+5.5E+00|+4.5E+00}",
    "{@RPT|R12 out of limits}}",
    "{@TJET|0|4|tj1}",
    "}",
    "{@D-T|0|0|0|12|u12}",
    "{@D-T|3|1|105|12|u12",
    "{@DPIN|105|NET_A|u12.3}}",
    "{@D-T|0|0|0|12|u12}",
    "{@Programming_time|1500msec}",
    "{@PS_info|12.0V|0.5A}",
    "{@PS_info|5.0V|1.2A}",
    "}}",
    "",
])

# ヘッダの無いログで使う更新時刻
MTIME = datetime(2024, 3, 1, 8, 0, 0).timestamp()
MTIME_PACKED = 240301080000


@pytest.fixture
def sample_log_text() -> str:
    return SAMPLE_LOG


@pytest.fixture
def write_log(tmp_path):
    """テキスト（または bytes）をログファイルとして書き出すファクトリ。"""
    def _write(content, name: str = "board.log") -> Path:
        path = tmp_path / name
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        return path
    return _write


@pytest.fixture
def interpret():
    """ログテキストを classifier → tree builder → interpreter に通す。"""
    def _interpret(text: str, modified_time: float = MTIME):
        forest = build_tree(parse_log_text(text))
        return LogInterpreter().interpret(forest, "board.log", modified_time=modified_time)
    return _interpret


def with_header(*lines: str) -> str:
    """BATCH / BTEST ヘッダ付きのログテキストを組み立てる。"""
    return "\n".join([BATCH_LINE, BTEST_LINE, *lines])


@pytest.fixture
def header_log():
    return with_header


@pytest.fixture
def mtime_packed() -> int:
    return MTIME_PACKED
