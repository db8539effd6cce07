# src/ictlogreader/models/log_record.py

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple, Union


class AnalogKind(Enum):
    """
    @A-xxx レコードの xxx 部分（アナログテストの種類）。
    """
    CAP = "CAP"
    DIO = "DIO"
    FUS = "FUS"
    IND = "IND"
    JUM = "JUM"
    MEA = "MEA"
    NFE = "NFE"
    NPN = "NPN"
    PFE = "PFE"
    PNP = "PNP"
    POT = "POT"
    RES = "RES"
    SWI = "SWI"
    ZEN = "ZEN"

    @classmethod
    def from_tag(cls, tag: str) -> Optional["AnalogKind"]:
        """'@A-RES' -> AnalogKind.RES。アナログ以外のタグなら None。"""
        if not tag.startswith("@A-"):
            return None
        try:
            return cls(tag[3:])
        except ValueError:
            return None


@dataclass(frozen=True)
class BatchRecord:
    """
    {@BATCH|UUT type|UUT type rev|fixture id|testhead number|testhead type|process step|
     batch id|operator id|controller|testplan id|testplan rev|parent panel type|
     parent panel type rev(|version label)}
    """
    uut_type: str
    uut_type_rev: str
    fixture_id: str
    testhead_number: str
    testhead_type: str
    process_step: str
    batch_id: str
    operator_id: str
    controller: str
    testplan_id: str
    testplan_rev: str
    parent_panel_type: str
    parent_panel_type_rev: str
    version_label: Optional[str] = None


@dataclass(frozen=True)
class BoardTestRecord:
    """
    {@BTEST|board id|test status|start datetime|duration|multiple test|log level|log set|
     learning|known good|end datetime|status qualifier|board number(|parent panel id)}
    """
    board_id: str
    status: int
    start_time: int          # YYMMDDhhmmss
    duration: int
    multiple_test: str
    log_level: str
    log_set: str
    learning: str
    known_good: str
    end_time: int            # YYMMDDhhmmss
    status_qualifier: str
    board_number: int
    parent_panel_id: Optional[str] = None


@dataclass(frozen=True)
class BlockRecord:
    """{@BLOCK|block designator|block status}"""
    designator: str
    status: int


@dataclass(frozen=True)
class AnalogRecord:
    """{@A-xxx|test status|measured value(|subtest designator)}"""
    kind: AnalogKind
    status: int
    value: float
    subtest: Optional[str] = None


@dataclass(frozen=True)
class DigitalRecord:
    """{@D-T|test status|substatus|failing vector|pin count|test designator}"""
    status: int
    substatus: int
    failing_vector: int
    pin_count: int
    designator: str


@dataclass(frozen=True)
class BoundaryRecord:
    """{@BS-CON|test designator|test status|shorts count|opens count}"""
    designator: str
    status: int
    shorts_count: int
    opens_count: int


@dataclass(frozen=True)
class PinsRecord:
    """{@PF|designator|test status|total pins}"""
    designator: str
    status: int
    total_pins: int


@dataclass(frozen=True)
class PinRecord:
    """{@PIN|pin|pin|...}"""
    pins: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ShortsRecord:
    """{@TS|test status|shorts count|phantoms count|opens count(|designator)}"""
    status: int
    shorts_count: int
    phantoms_count: int
    opens_count: int
    designator: Optional[str] = None


@dataclass(frozen=True)
class ShortsSourceRecord:
    """{@TS-S|shorts count|phantoms count|source node}"""
    shorts_count: int
    phantoms_count: int
    node: str


@dataclass(frozen=True)
class ShortsDestRecord:
    """{@TS-D|node|deviation|node|deviation|...}"""
    destinations: List[Tuple[str, float]] = field(default_factory=list)


@dataclass(frozen=True)
class ShortsOpenRecord:
    """{@TS-O|source node|destination node|deviation}"""
    source: str
    destination: str
    deviation: float


@dataclass(frozen=True)
class TestJetRecord:
    """{@TJET|test status|pin count|test designator}"""
    status: int
    pin_count: int
    designator: str


@dataclass(frozen=True)
class DigitalPinRecord:
    """
    {@DPIN|failing vector|node|pin|node|pin|...}

    ピン名が欠けている末尾ノードは (node, None) として持つ。
    """
    failing_vector: int
    pins: List[Tuple[str, Optional[str]]] = field(default_factory=list)


@dataclass(frozen=True)
class Lim2Record:
    """{@LIM2|high limit|low limit}"""
    upper: float
    lower: float


@dataclass(frozen=True)
class Lim3Record:
    """{@LIM3|nominal|high limit|low limit}"""
    nominal: float
    upper: float
    lower: float


@dataclass(frozen=True)
class ReportRecord:
    """{@RPT|message}  message 内の '|' はそのまま残す。"""
    text: str


@dataclass(frozen=True)
class UserDefinedRecord:
    """
    規格外（装置ベンダー／ライン独自）の @タグ 行。

    fields[0] はタグそのもの（例: "@Programming_time"）。
    """
    fields: List[str] = field(default_factory=list)

    @property
    def tag(self) -> str:
        return self.fields[0] if self.fields else ""


@dataclass(frozen=True)
class DeferredRecord:
    """
    形式としては既知だが中身を解釈しないレコード
    （@BS-O / @BS-S / @AID / @ALM / @ARRAY）。
    """
    tag: str
    fields: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ErrorRecord:
    """
    解釈できなかった行。

    - raw: 元の1行
    - reason: 失敗理由
    - tag: タグ自体は既知だった場合はそのタグ（ツリー上の配置に使う）
    - fields: '|' で分割した生のフィールド（fields[0] はタグ）。
      BTEST や BLOCK のように子を持つレコードは、ここから読める項目だけ拾い直す。
    """
    raw: str
    reason: str
    tag: Optional[str] = None
    fields: List[str] = field(default_factory=list)


Record = Union[
    BatchRecord,
    BoardTestRecord,
    BlockRecord,
    AnalogRecord,
    DigitalRecord,
    BoundaryRecord,
    PinsRecord,
    PinRecord,
    ShortsRecord,
    ShortsSourceRecord,
    ShortsDestRecord,
    ShortsOpenRecord,
    TestJetRecord,
    DigitalPinRecord,
    Lim2Record,
    Lim3Record,
    ReportRecord,
    UserDefinedRecord,
    DeferredRecord,
    ErrorRecord,
]
