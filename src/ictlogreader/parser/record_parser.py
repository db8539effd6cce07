# src/ictlogreader/parser/record_parser.py
from __future__ import annotations

from typing import Callable, Dict, List, Optional

from ictlogreader.models.log_line import LogLine
from ictlogreader.models.log_record import (
    AnalogKind,
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

FIELD_SEPARATOR = "|"

# 形式は既知だが中身は解釈しないタグ
DEFERRED_TAGS = frozenset({"@BS-O", "@BS-S", "@AID", "@ALM", "@ARRAY"})


class RecordFieldError(ValueError):
    """フィールドの欠落・数値変換失敗。parse_record_line の外には出ない。"""


class _Fields:
    """
    '|' 区切りのフィールド列から型付きで値を取り出すヘルパ。
    index 0 はタグなので、値は 1 始まりで指定する。
    """

    def __init__(self, fields: List[str]) -> None:
        self._fields = fields

    def __len__(self) -> int:
        return len(self._fields)

    def rest(self, start: int) -> List[str]:
        return self._fields[start:]

    def text(self, i: int, name: str) -> str:
        if i >= len(self._fields):
            raise RecordFieldError(f"missing field #{i} ({name})")
        return self._fields[i]

    def optional(self, i: int) -> Optional[str]:
        if i >= len(self._fields):
            return None
        value = self._fields[i]
        return value if value else None

    def integer(self, i: int, name: str) -> int:
        s = self.text(i, name)
        try:
            return int(s)
        except ValueError:
            raise RecordFieldError(f"field #{i} ({name}) is not an integer: {s!r}") from None

    def number(self, i: int, name: str) -> float:
        s = self.text(i, name)
        try:
            return float(s)
        except ValueError:
            raise RecordFieldError(f"field #{i} ({name}) is not a number: {s!r}") from None


def _parse_batch(f: _Fields) -> BatchRecord:
    return BatchRecord(
        uut_type=f.text(1, "uut type"),
        uut_type_rev=f.text(2, "uut type rev"),
        fixture_id=f.text(3, "fixture id"),
        testhead_number=f.text(4, "testhead number"),
        testhead_type=f.text(5, "testhead type"),
        process_step=f.text(6, "process step"),
        batch_id=f.text(7, "batch id"),
        operator_id=f.text(8, "operator id"),
        controller=f.text(9, "controller"),
        testplan_id=f.text(10, "testplan id"),
        testplan_rev=f.text(11, "testplan rev"),
        parent_panel_type=f.text(12, "parent panel type"),
        parent_panel_type_rev=f.text(13, "parent panel type rev"),
        version_label=f.optional(14),
    )


def _parse_btest(f: _Fields) -> BoardTestRecord:
    return BoardTestRecord(
        board_id=f.text(1, "board id"),
        status=f.integer(2, "test status"),
        start_time=f.integer(3, "start datetime"),
        duration=f.integer(4, "duration"),
        multiple_test=f.text(5, "multiple test"),
        log_level=f.text(6, "log level"),
        log_set=f.text(7, "log set"),
        learning=f.text(8, "learning"),
        known_good=f.text(9, "known good"),
        end_time=f.integer(10, "end datetime"),
        status_qualifier=f.text(11, "status qualifier"),
        board_number=f.integer(12, "board number"),
        parent_panel_id=f.optional(13),
    )


def _parse_block(f: _Fields) -> BlockRecord:
    return BlockRecord(
        designator=f.text(1, "block designator"),
        status=f.integer(2, "block status"),
    )


def _parse_digital(f: _Fields) -> DigitalRecord:
    return DigitalRecord(
        status=f.integer(1, "test status"),
        substatus=f.integer(2, "substatus"),
        failing_vector=f.integer(3, "failing vector"),
        pin_count=f.integer(4, "pin count"),
        designator=f.text(5, "test designator"),
    )


def _parse_boundary(f: _Fields) -> BoundaryRecord:
    return BoundaryRecord(
        designator=f.text(1, "test designator"),
        status=f.integer(2, "test status"),
        shorts_count=f.integer(3, "shorts count"),
        opens_count=f.integer(4, "opens count"),
    )


def _parse_pins(f: _Fields) -> PinsRecord:
    return PinsRecord(
        designator=f.text(1, "designator"),
        status=f.integer(2, "test status"),
        total_pins=f.integer(3, "total pins"),
    )


def _parse_pin(f: _Fields) -> PinRecord:
    return PinRecord(pins=[p for p in f.rest(1) if p])


def _parse_shorts(f: _Fields) -> ShortsRecord:
    return ShortsRecord(
        status=f.integer(1, "test status"),
        shorts_count=f.integer(2, "shorts count"),
        phantoms_count=f.integer(3, "phantoms count"),
        opens_count=f.integer(4, "opens count"),
        designator=f.optional(5),
    )


def _parse_shorts_src(f: _Fields) -> ShortsSourceRecord:
    return ShortsSourceRecord(
        shorts_count=f.integer(1, "shorts count"),
        phantoms_count=f.integer(2, "phantoms count"),
        node=f.text(3, "source node"),
    )


def _parse_shorts_dest(f: _Fields) -> ShortsDestRecord:
    if len(f) < 3 or len(f) % 2 == 0:
        raise RecordFieldError("destination list must be (node, deviation) pairs")
    destinations = []
    for i in range(1, len(f), 2):
        destinations.append((f.text(i, "destination node"), f.number(i + 1, "deviation")))
    return ShortsDestRecord(destinations=destinations)


def _parse_shorts_open(f: _Fields) -> ShortsOpenRecord:
    return ShortsOpenRecord(
        source=f.text(1, "source node"),
        destination=f.text(2, "destination node"),
        deviation=f.number(3, "deviation"),
    )


def _parse_testjet(f: _Fields) -> TestJetRecord:
    return TestJetRecord(
        status=f.integer(1, "test status"),
        pin_count=f.integer(2, "pin count"),
        designator=f.text(3, "test designator"),
    )


def _parse_dpin(f: _Fields) -> DigitalPinRecord:
    vector = f.integer(1, "failing vector")
    rest = f.rest(2)
    pins = []
    for i in range(0, len(rest), 2):
        node = rest[i]
        pin = rest[i + 1] if i + 1 < len(rest) and rest[i + 1] else None
        pins.append((node, pin))
    return DigitalPinRecord(failing_vector=vector, pins=pins)


def _parse_lim2(f: _Fields) -> Lim2Record:
    return Lim2Record(
        upper=f.number(1, "high limit"),
        lower=f.number(2, "low limit"),
    )


def _parse_lim3(f: _Fields) -> Lim3Record:
    return Lim3Record(
        nominal=f.number(1, "nominal"),
        upper=f.number(2, "high limit"),
        lower=f.number(3, "low limit"),
    )


_PARSERS: Dict[str, Callable[[_Fields], Record]] = {
    "@BATCH": _parse_batch,
    "@BTEST": _parse_btest,
    "@BLOCK": _parse_block,
    "@D-T": _parse_digital,
    "@BS-CON": _parse_boundary,
    "@PF": _parse_pins,
    "@PIN": _parse_pin,
    "@TS": _parse_shorts,
    "@TS-S": _parse_shorts_src,
    "@TS-D": _parse_shorts_dest,
    "@TS-O": _parse_shorts_open,
    "@TJET": _parse_testjet,
    "@DPIN": _parse_dpin,
    "@LIM2": _parse_lim2,
    "@LIM3": _parse_lim3,
}


def strip_braces(line: str) -> str:
    """
    行頭の '{' と行末の '}' を取り除く。

    例:
        "{@LIM2|+5.5|+4.5}}" -> "@LIM2|+5.5|+4.5"
    """
    return line.strip().lstrip("{").rstrip("}").strip()


def _strip_report_closers(text: str) -> str:
    """
    @RPT 本文の末尾から、対応する '{' の無い '}' だけを取り除く。

    例:
        "R12 out of limits}}" -> "R12 out of limits"
        "value {5}}"          -> "value {5}"
    """
    while text.endswith("}") and text.count("}") > text.count("{"):
        text = text[:-1].rstrip()
    return text


def _parse_analog(tag: str, f: _Fields) -> AnalogRecord:
    kind = AnalogKind.from_tag(tag)
    if kind is None:
        raise RecordFieldError(f"unknown analog test kind: {tag}")
    return AnalogRecord(
        kind=kind,
        status=f.integer(1, "test status"),
        value=f.number(2, "measured value"),
        subtest=f.optional(3),
    )


def parse_record_line(line: str) -> Record:
    """
    1行を対応するレコード型に変換する。

    - 未知の @タグ は UserDefinedRecord
    - タグが無い行、フィールド不正の行は ErrorRecord
      （既知タグならタグ名は ErrorRecord.tag に残す）
    """
    opened = line.strip().lstrip("{").strip()
    if opened.startswith("@RPT"):
        tag, _, text = opened.partition(FIELD_SEPARATOR)
        if tag.rstrip("}").strip() == "@RPT":
            return ReportRecord(text=_strip_report_closers(text))

    body = strip_braces(line)
    if not body:
        return ErrorRecord(raw=line, reason="empty line")

    fields = [f.strip() for f in body.split(FIELD_SEPARATOR)]
    tag = fields[0]
    if not tag.startswith("@"):
        return ErrorRecord(raw=line, reason="line does not start with an @ tag")

    f = _Fields(fields)
    try:
        if tag.startswith("@A-"):
            return _parse_analog(tag, f)
        parser = _PARSERS.get(tag)
        if parser is not None:
            return parser(f)
    except RecordFieldError as e:
        return ErrorRecord(raw=line, reason=str(e), tag=tag, fields=fields)

    if tag in DEFERRED_TAGS:
        return DeferredRecord(tag=tag, fields=fields[1:])

    return UserDefinedRecord(fields=fields)


def parse_log_text(text: str) -> List[LogLine]:
    """
    ログテキスト全体を行単位に分割し、LogLine のリストに変換する。
    空行と '{' '}' だけの行は読み飛ばす。
    """
    lines: List[LogLine] = []

    for idx, line in enumerate(text.splitlines(), start=1):
        raw = line.rstrip("\r\n")
        if not strip_braces(raw):
            continue

        lines.append(
            LogLine(
                line_no=idx,
                raw=raw,
                record=parse_record_line(raw),
            )
        )

    return lines
