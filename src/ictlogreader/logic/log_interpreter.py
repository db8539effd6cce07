# src/ictlogreader/logic/log_interpreter.py
"""
ログツリー → 正規化モデル（BoardLog）の変換。

ツリーを1回だけ走査し、レコード種別ごとのルールで Test を積み上げる。
内容の不備はすべて警告／エラーとして記録するだけで、例外にはしない。
"""

from __future__ import annotations

import logging
from dataclasses import replace
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from ictlogreader.logic.status_classifier import describe_board_status
from ictlogreader.logic.timestamp import packed_mtime
from ictlogreader.models.board_log import PIN_TEST_INDEX, BoardLog
from ictlogreader.models.ict_test import (
    NO_LIMIT,
    Lim2,
    Lim3,
    Limits,
    Outcome,
    Test,
    TestResult,
    TestType,
)
from ictlogreader.models.log_record import (
    AnalogRecord,
    BlockRecord,
    BoundaryRecord,
    DeferredRecord,
    DigitalPinRecord,
    DigitalRecord,
    ErrorRecord,
    Lim2Record,
    Lim3Record,
    PinRecord,
    PinsRecord,
    ReportRecord,
    ShortsDestRecord,
    ShortsOpenRecord,
    ShortsRecord,
    ShortsSourceRecord,
    TestJetRecord,
    UserDefinedRecord,
)
from ictlogreader.models.tree_node import TreeNode
from ictlogreader.parser.board_header_parser import extract_board_header

logger = logging.getLogger(__name__)

PIN_TEST_NAME = "pins"
SHORTS_TEST_NAME = "shorts"
PROGRAMMING_TIME_TAG = "@Programming_time"
PS_INFO_TAG = "@PS_info"
BLOCK_TAG = "@BLOCK"


def strip_index(name: str) -> str:
    """
    テスト名先頭の装置内インデックスを取り除く。

    例:
        "17%c617" -> "c617"
        "c617"    -> "c617"   （'%' が無ければそのまま）
    取り除くと空になる場合も元の名前を返す。
    """
    _, sep, rest = name.partition("%")
    if sep and rest:
        return rest
    return name


class LogInterpreter:
    """
    1ファイル分のツリーを解釈する。

    PS_info の連番やデジタル／バウンダリスキャンのスロットはインスタンスに持つので、
    ファイルごとに別インスタンス（または interpret の呼び出し）で独立している。
    """

    def __init__(self) -> None:
        self._reset()

    def _reset(self) -> None:
        self.tests: List[Test] = [
            Test(
                name=PIN_TEST_NAME,
                ttype=TestType.PIN,
                result=TestResult(Outcome.UNKNOWN, 0.0),
            )
        ]
        self.report: List[str] = []
        self.failed_nodes: List[str] = []
        self.failed_pins: List[str] = []
        self.warnings: List[str] = []
        self.errors: List[str] = []
        self._ps_counter = 0
        # (種別, テスト名) -> self.tests の添字
        self._slots: Dict[Tuple[TestType, str], int] = {}

    # ─────────────────────────────
    # 診断メッセージ
    # ─────────────────────────────
    def _warn(self, msg: str) -> None:
        logger.warning(msg)
        self.warnings.append(msg)

    def _error(self, msg: str) -> None:
        logger.error(msg)
        self.errors.append(msg)

    # ─────────────────────────────
    # エントリポイント
    # ─────────────────────────────
    def interpret(
        self,
        forest: List[TreeNode],
        source: Union[str, Path],
        modified_time: Optional[float] = None,
    ) -> BoardLog:
        """
        ツリーを走査して BoardLog を組み立てる。

        - modified_time: ファイル更新時刻（epoch 秒）。開始時刻がログに無い場合に使う。
          None なら source から取得を試みる。
        """
        self._reset()
        source = Path(source)

        extraction = extract_board_header(forest)
        for msg in extraction.warnings:
            self._warn(f"{msg}: {source}")
        for msg in extraction.errors:
            self._error(f"{msg}: {source}")
        header = extraction.header

        for node in extraction.test_nodes:
            self._handle_test_entry(node)

        time_start = header.time_start
        if time_start == 0:
            mtime = modified_time
            if mtime is None:
                try:
                    mtime = source.stat().st_mtime
                except OSError as e:
                    self._warn(f"ファイル更新時刻を取得できません: {e}")
            if mtime is not None:
                time_start = packed_mtime(mtime)

        time_end = header.time_end if header.time_end != 0 else time_start

        logger.info(
            "%s: %d tests, %d warnings, %d errors",
            source.name, len(self.tests), len(self.warnings), len(self.errors),
        )

        return BoardLog(
            source=source,
            dmc=header.dmc,
            dmc_mb=header.dmc_mb,
            product_id=header.product_id,
            index=header.index,
            status=header.status,
            status_str=describe_board_status(header.status),
            time_start=time_start,
            time_end=time_end,
            tests=list(self.tests),
            report="\n".join(self.report),
            failed_nodes=list(self.failed_nodes),
            failed_pins=list(self.failed_pins),
            warnings=list(self.warnings),
            errors=list(self.errors),
        )

    # ─────────────────────────────
    # テスト項目（BTEST 直下）
    # ─────────────────────────────
    def _handle_test_entry(self, node: TreeNode) -> None:
        rec = node.record

        if isinstance(rec, AnalogRecord):
            self._handle_analog(node, group=None)
        elif isinstance(rec, BlockRecord):
            self._handle_block(node, strip_index(rec.designator))
        elif isinstance(rec, DigitalRecord):
            self._handle_digital(node)
        elif isinstance(rec, BoundaryRecord):
            self._handle_boundary(node)
        elif isinstance(rec, TestJetRecord):
            self._handle_testjet(node, group=None)
        elif isinstance(rec, PinsRecord):
            self._handle_pins(node)
        elif isinstance(rec, ShortsRecord):
            self._handle_shorts(node)
        elif isinstance(rec, UserDefinedRecord):
            self._handle_user_defined(rec)
        elif isinstance(rec, ReportRecord):
            self.report.append(rec.text)
        elif isinstance(rec, DeferredRecord):
            pass
        elif isinstance(rec, ErrorRecord) and rec.tag == BLOCK_TAG:
            self._handle_broken_block(node)
        elif isinstance(rec, ErrorRecord):
            self._handle_error_node(node)
        else:
            self._error(f"BTEST 直下に置けないレコードです (line {node.line_no}): {rec!r}")
            self._collect_reports(node.branches)

    def _handle_block(self, node: TreeNode, group: Optional[str]) -> None:
        for sub in node.branches:
            sr = sub.record
            if isinstance(sr, AnalogRecord):
                self._handle_analog(sub, group=group)
            elif isinstance(sr, DigitalRecord):
                self._handle_digital(sub)
            elif isinstance(sr, TestJetRecord):
                self._handle_testjet(sub, group=group)
            elif isinstance(sr, BoundaryRecord):
                self._handle_boundary(sub)
            elif isinstance(sr, ReportRecord):
                self.report.append(sr.text)
            elif isinstance(sr, DeferredRecord):
                pass
            elif isinstance(sr, UserDefinedRecord):
                self._error(f"BLOCK 内のユーザー定義レコードは未対応です (line {sub.line_no}): {sr.fields}")
            elif isinstance(sr, ErrorRecord):
                self._handle_error_node(sub)
            else:
                self._error(f"BLOCK '{group}' 内に置けないレコードです (line {sub.line_no}): {sr!r}")
                self._collect_reports(sub.branches)

    def _handle_broken_block(self, node: TreeNode) -> None:
        """
        フィールドが壊れた @BLOCK。エラーは記録するが、メンバーのテストは捨てない。
        グループ名が読めなければ接頭辞なし（単独のテストと同じ扱い）にする。
        """
        rec = node.record
        self._error(f"解析できない BLOCK 行です (line {node.line_no}, {rec.reason}): {rec.raw}")

        designator = rec.fields[1] if len(rec.fields) > 1 else ""
        group = strip_index(designator) if designator else None
        self._handle_block(node, group)

    def _handle_analog(self, node: TreeNode, group: Optional[str]) -> None:
        rec = node.record

        if group is None:
            if not rec.subtest:
                self._error(f"BLOCK 外のアナログテストに名前がありません (line {node.line_no}): {rec!r}")
                self._collect_reports(node.branches)
                return
            name = strip_index(rec.subtest)
        elif rec.subtest:
            name = f"{group}%{strip_index(rec.subtest)}"
        else:
            name = group

        limits, rest = self._take_limits(node)
        for sub in rest:
            self._handle_subfield(sub)

        self.tests.append(
            Test(
                name=name,
                ttype=TestType.from_analog(rec.kind),
                result=TestResult(Outcome.from_status(rec.status), rec.value),
                limits=limits,
            )
        )

    def _take_limits(self, node: TreeNode) -> Tuple[Limits, List[TreeNode]]:
        """
        リミットは必ず最初の子。それ以外が最初に来ていたら解析エラー扱い
        （ただしその子自体は通常のサブフィールドとして処理する）。
        """
        if not node.branches:
            return NO_LIMIT, []

        first = node.branches[0].record
        if isinstance(first, Lim2Record):
            return Lim2(first.upper, first.lower), node.branches[1:]
        if isinstance(first, Lim3Record):
            return Lim3(first.nominal, first.upper, first.lower), node.branches[1:]

        self._error(f"アナログテストのリミットを解析できません (line {node.branches[0].line_no}): {first!r}")
        return NO_LIMIT, node.branches

    def _handle_digital(self, node: TreeNode) -> None:
        rec = node.record
        for sub in node.branches:
            self._handle_subfield(sub)
        self._merge_status_test(TestType.DIGITAL, strip_index(rec.designator), rec.status)

    def _handle_boundary(self, node: TreeNode) -> None:
        rec = node.record
        # @BS-O / @BS-S は DeferredRecord として黙って受け流す
        for sub in node.branches:
            self._handle_subfield(sub)
        self._merge_status_test(TestType.BOUNDARY_SCAN, strip_index(rec.designator), rec.status)

    def _merge_status_test(self, ttype: TestType, name: str, status: int) -> None:
        """
        同じテストが複数回出てくる場合のまとめ方:
        最初の1回で Test を作り、以降は status != 0 のときだけ結果を上書きする。
        後から来た合格で先の不合格を消すことはしない。
        """
        key = (ttype, name)
        idx = self._slots.get(key)
        if idx is None:
            self._slots[key] = len(self.tests)
            self.tests.append(Test(name=name, ttype=ttype, result=TestResult.from_status(status)))
        elif status != 0:
            self.tests[idx] = replace(self.tests[idx], result=TestResult.from_status(status))

    def _handle_testjet(self, node: TreeNode, group: Optional[str]) -> None:
        rec = node.record
        for sub in node.branches:
            self._handle_subfield(sub)

        name = strip_index(rec.designator)
        if group is not None:
            name = f"{group}%{name}"

        self.tests.append(Test(name=name, ttype=TestType.TESTJET, result=TestResult.from_status(rec.status)))

    def _handle_pins(self, node: TreeNode) -> None:
        rec = node.record
        for sub in node.branches:
            self._handle_subfield(sub)

        pin_test = self.tests[PIN_TEST_INDEX]
        self.tests[PIN_TEST_INDEX] = replace(pin_test, result=TestResult.from_status(rec.status))

    def _handle_shorts(self, node: TreeNode) -> None:
        rec = node.record

        # 不合格のショートテストでも 'test status' が 0 になっていることがあるので、
        # 続く3つのカウントもすべて 0 であることを確認する
        status = rec.status
        if rec.shorts_count != 0 or rec.phantoms_count != 0 or rec.opens_count != 0:
            status = 1

        for sub in node.branches:
            self._handle_subfield(sub)

        self.tests.append(Test(name=SHORTS_TEST_NAME, ttype=TestType.SHORTS, result=TestResult.from_status(status)))

    # ─────────────────────────────
    # テスト項目の子レコード
    # ─────────────────────────────
    def _handle_subfield(self, sub: TreeNode) -> None:
        rec = sub.record

        if isinstance(rec, ReportRecord):
            self.report.append(rec.text)
        elif isinstance(rec, DigitalPinRecord):
            self.failed_nodes.extend(node for node, _pin in rec.pins)
        elif isinstance(rec, PinRecord):
            self.failed_pins.extend(rec.pins)
        elif isinstance(rec, ShortsSourceRecord):
            self.failed_nodes.append(rec.node)
            for sub2 in sub.branches:
                self._handle_subfield(sub2)
        elif isinstance(rec, ShortsDestRecord):
            self.failed_nodes.extend(node for node, _deviation in rec.destinations)
        elif isinstance(rec, ShortsOpenRecord):
            self.failed_nodes.append(rec.source)
            self.failed_nodes.append(rec.destination)
            for sub2 in sub.branches:
                self._handle_subfield(sub2)
        elif isinstance(rec, DeferredRecord):
            pass
        elif isinstance(rec, ErrorRecord):
            self._handle_error_node(sub)
        else:
            self._error(f"未対応のサブフィールドです (line {sub.line_no}): {rec!r}")
            self._collect_reports(sub.branches)

    def _handle_error_node(self, node: TreeNode) -> None:
        rec = node.record
        self._error(f"解析できない行です (line {node.line_no}, {rec.reason}): {rec.raw}")
        self._collect_reports(node.branches)

    def _collect_reports(self, branches: List[TreeNode]) -> None:
        """解釈できないノードの配下からも @RPT だけは拾っておく。"""
        for child in branches:
            for n in child.walk():
                if isinstance(n.record, ReportRecord):
                    self.report.append(n.record.text)

    # ─────────────────────────────
    # ユーザー定義レコード
    # ─────────────────────────────
    def _handle_user_defined(self, rec: UserDefinedRecord) -> None:
        tag = rec.tag
        if tag == PROGRAMMING_TIME_TAG:
            self._handle_programming_time(rec.fields)
        elif tag == PS_INFO_TAG:
            self._handle_ps_info(rec.fields)
        else:
            self._error(f"未対応のユーザー定義レコードです: {rec.fields}")

    def _handle_programming_time(self, fields: List[str]) -> None:
        """@Programming_time|1500msec -> Programming_time = 1.5 [s]"""
        if len(fields) < 2 or not fields[1].endswith("msec"):
            self._error(f"{PROGRAMMING_TIME_TAG} の解析に失敗しました: {fields}")
            return

        try:
            msec = int(fields[1][: -len("msec")])
        except ValueError:
            self._error(f"{PROGRAMMING_TIME_TAG} の解析に失敗しました: {fields}")
            return

        self.tests.append(
            Test(
                name="Programming_time",
                ttype=TestType.UNKNOWN,
                result=TestResult(Outcome.PASS, msec / 1000.0),
            )
        )

    def _handle_ps_info(self, fields: List[str]) -> None:
        """@PS_info|12.0V|0.5A -> PS_Info_<n>%Voltage, PS_Info_<n>%Current"""
        if len(fields) < 3:
            self._error(f"{PS_INFO_TAG} の解析に失敗しました: {fields}")
            return

        voltage = _parse_suffixed(fields[1], "V")
        current = _parse_suffixed(fields[2], "A")
        if voltage is None or current is None:
            self._error(f"{PS_INFO_TAG} の解析に失敗しました: {fields}")
            return

        self._ps_counter += 1
        prefix = f"PS_Info_{self._ps_counter}"
        self.tests.append(
            Test(
                name=f"{prefix}%Voltage",
                ttype=TestType.MEASUREMENT,
                result=TestResult(Outcome.PASS, voltage),
            )
        )
        self.tests.append(
            Test(
                name=f"{prefix}%Current",
                ttype=TestType.CURRENT,
                result=TestResult(Outcome.PASS, current),
            )
        )


def _parse_suffixed(value: str, suffix: str) -> Optional[float]:
    """'12.0V' -> 12.0。単位が違う・数値でない場合は None。"""
    if not value.endswith(suffix):
        return None
    try:
        return float(value[: -len(suffix)])
    except ValueError:
        return None


def interpret_log(
    forest: List[TreeNode],
    source: Union[str, Path],
    modified_time: Optional[float] = None,
) -> BoardLog:
    """新しい LogInterpreter で1ファイル分を解釈するショートカット。"""
    return LogInterpreter().interpret(forest, source, modified_time)
