# src/ictlogreader/parser/tree_builder.py
from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, List, Optional

from ictlogreader.models.log_line import LogLine
from ictlogreader.models.log_record import (
    AnalogRecord,
    BatchRecord,
    BlockRecord,
    BoardTestRecord,
    BoundaryRecord,
    DeferredRecord,
    DigitalPinRecord,
    DigitalRecord,
    ErrorRecord,
    Lim2Record,
    Lim3Record,
    PinRecord,
    PinsRecord,
    Record,
    ReportRecord,
    ShortsDestRecord,
    ShortsOpenRecord,
    ShortsRecord,
    ShortsSourceRecord,
    TestJetRecord,
    UserDefinedRecord,
)
from ictlogreader.models.tree_node import TreeNode

# ─────────────────────────────────────────────
# レコード種別（ツリー上の位置を決めるための分類）
# ─────────────────────────────────────────────
BATCH = "batch"
BTEST = "btest"
BLOCK = "block"
ANALOG = "analog"
DIGITAL = "digital"
TESTJET = "testjet"
BOUNDARY = "boundary"
PINS = "pins"
PIN = "pin"
SHORTS = "shorts"
TS_SRC = "ts-src"
TS_DEST = "ts-dest"
TS_OPEN = "ts-open"
DPIN = "dpin"
LIMIT = "limit"
REPORT = "report"
USER = "user"
BS_DETAIL = "bs-detail"
ALARM = "alarm"
ERROR = "error"

_KIND_BY_TAG: Dict[str, str] = {
    "@BATCH": BATCH,
    "@BTEST": BTEST,
    "@BLOCK": BLOCK,
    "@D-T": DIGITAL,
    "@TJET": TESTJET,
    "@BS-CON": BOUNDARY,
    "@PF": PINS,
    "@PIN": PIN,
    "@TS": SHORTS,
    "@TS-S": TS_SRC,
    "@TS-D": TS_DEST,
    "@TS-O": TS_OPEN,
    "@DPIN": DPIN,
    "@LIM2": LIMIT,
    "@LIM3": LIMIT,
    "@RPT": REPORT,
    "@BS-O": BS_DETAIL,
    "@BS-S": BS_DETAIL,
    "@AID": ALARM,
    "@ALM": ALARM,
    "@ARRAY": ALARM,
}

_KIND_BY_TYPE: Dict[type, str] = {
    BatchRecord: BATCH,
    BoardTestRecord: BTEST,
    BlockRecord: BLOCK,
    AnalogRecord: ANALOG,
    DigitalRecord: DIGITAL,
    TestJetRecord: TESTJET,
    BoundaryRecord: BOUNDARY,
    PinsRecord: PINS,
    PinRecord: PIN,
    ShortsRecord: SHORTS,
    ShortsSourceRecord: TS_SRC,
    ShortsDestRecord: TS_DEST,
    ShortsOpenRecord: TS_OPEN,
    DigitalPinRecord: DPIN,
    Lim2Record: LIMIT,
    Lim3Record: LIMIT,
    ReportRecord: REPORT,
    UserDefinedRecord: USER,
}

TEST_ENTRY_KINDS: FrozenSet[str] = frozenset(
    {BLOCK, ANALOG, DIGITAL, TESTJET, BOUNDARY, PINS, SHORTS}
)

# 親の種別 → 子として置ける種別
CHILD_KINDS: Dict[str, FrozenSet[str]] = {
    BATCH: frozenset({BTEST, REPORT}),
    BTEST: TEST_ENTRY_KINDS | {USER, ALARM, REPORT},
    BLOCK: frozenset({ANALOG, DIGITAL, TESTJET, BOUNDARY, ALARM, REPORT}),
    ANALOG: frozenset({LIMIT, REPORT}),
    DIGITAL: frozenset({DPIN, REPORT}),
    TESTJET: frozenset({DPIN, REPORT}),
    BOUNDARY: frozenset({BS_DETAIL, REPORT}),
    PINS: frozenset({PIN, REPORT}),
    SHORTS: frozenset({TS_SRC, TS_OPEN, REPORT}),
    TS_SRC: frozenset({TS_DEST, REPORT}),
    TS_OPEN: frozenset({REPORT}),
}

# ツリーの最上位に置いてよい種別（ヘッダの無いログも読めるようにする）
ROOT_KINDS: FrozenSet[str] = TEST_ENTRY_KINDS | {BATCH, BTEST, USER, ALARM, REPORT}


def record_kind(record: Record) -> str:
    """
    レコードのツリー上の種別を返す。

    ErrorRecord でもタグが既知なら、そのタグの種別として配置する。
    """
    if isinstance(record, ErrorRecord):
        if record.tag is None:
            return ERROR
        if record.tag.startswith("@A-"):
            return ANALOG
        return _KIND_BY_TAG.get(record.tag, ERROR)
    if isinstance(record, DeferredRecord):
        return _KIND_BY_TAG.get(record.tag, ALARM)
    return _KIND_BY_TYPE[type(record)]


def _accepting_depth(stack: List[TreeNode], kind: str) -> Optional[int]:
    """kind を子に持てる一番深い開いたノードの位置。無ければ None。"""
    for depth in range(len(stack) - 1, -1, -1):
        parent_kind = record_kind(stack[depth].record)
        if kind in CHILD_KINDS.get(parent_kind, frozenset()):
            return depth
    return None


def build_tree(lines: Iterable[LogLine]) -> List[TreeNode]:
    """
    LogLine の列を、レコード種別の親子関係に従ってツリー（森）にまとめる。

    - 階層はレコード種別だけで決まる（インデントや括弧は見ない）
    - 置き場所の無いレコードは ErrorRecord として直近のノードにぶら下げる
    - 兄弟・子ともにファイル順を保つ
    """
    forest: List[TreeNode] = []
    stack: List[TreeNode] = []

    for line in lines:
        node = TreeNode(line_no=line.line_no, record=line.record)
        kind = record_kind(line.record)

        if kind == ERROR:
            _attach_leaf(forest, stack, node)
            continue

        depth = _accepting_depth(stack, kind)
        if depth is not None:
            del stack[depth + 1:]
            stack[-1].branches.append(node)
            stack.append(node)
        elif kind in ROOT_KINDS:
            stack.clear()
            forest.append(node)
            stack.append(node)
        else:
            illegal = TreeNode(
                line_no=line.line_no,
                record=ErrorRecord(
                    raw=line.raw,
                    reason=f"'{kind}' record cannot be nested here",
                ),
            )
            _attach_leaf(forest, stack, illegal)

    return forest


def _attach_leaf(forest: List[TreeNode], stack: List[TreeNode], node: TreeNode) -> None:
    if stack:
        stack[-1].branches.append(node)
    else:
        forest.append(node)
