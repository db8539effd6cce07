# src/ictlogreader/parser/board_header_parser.py

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional

from ictlogreader.models.board_header import BoardHeader
from ictlogreader.models.log_record import BatchRecord, BoardTestRecord, ErrorRecord
from ictlogreader.models.tree_node import TreeNode

MISSING_BATCH = "No BATCH record found"
MISSING_BTEST = "No BTEST record found"


@dataclass
class HeaderExtraction:
    """
    extract_board_header の結果。

    - header: 抽出したヘッダ（見つからない項目はデフォルト値）
    - test_nodes: テスト項目として走査すべきノード列
    - warnings: ヘッダ欠落などの警告
    - errors: ヘッダ行はあったがフィールドが壊れていた場合のエラー
    """
    header: BoardHeader
    test_nodes: List[TreeNode]
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


def _is_broken(node: TreeNode, tag: str) -> bool:
    rec = node.record
    return isinstance(rec, ErrorRecord) and rec.tag == tag


def _raw_text(fields: List[str], i: int) -> Optional[str]:
    if i < len(fields) and fields[i]:
        return fields[i]
    return None


def _raw_int(fields: List[str], i: int) -> Optional[int]:
    value = _raw_text(fields, i)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _apply_batch(header: BoardHeader, batch: BatchRecord) -> None:
    header.product_id = batch.uut_type
    header.product_rev = batch.uut_type_rev or None
    header.fixture_id = batch.fixture_id or None
    header.operator_id = batch.operator_id or None
    header.testplan_id = batch.testplan_id or None


def _apply_broken_batch(header: BoardHeader, rec: ErrorRecord) -> None:
    """壊れた @BATCH 行から、読み取れる項目だけを拾う。"""
    f = rec.fields
    header.product_id = _raw_text(f, 1) or header.product_id
    header.product_rev = _raw_text(f, 2)
    header.fixture_id = _raw_text(f, 3)
    header.operator_id = _raw_text(f, 8)
    header.testplan_id = _raw_text(f, 10)


def _apply_btest(header: BoardHeader, btest: BoardTestRecord) -> None:
    header.dmc = btest.board_id
    # 親パネル ID が無い場合は自分自身の DMC を使う
    header.dmc_mb = btest.parent_panel_id if btest.parent_panel_id else btest.board_id
    header.status = btest.status
    header.time_start = btest.start_time
    header.time_end = btest.end_time
    header.index = btest.board_number


def _apply_broken_btest(header: BoardHeader, rec: ErrorRecord) -> None:
    """
    壊れた @BTEST 行から、読み取れる項目だけを拾う。
    数値に変換できない項目はデフォルト値のまま。
    """
    f = rec.fields
    board_id = _raw_text(f, 1)
    if board_id is not None:
        header.dmc = board_id
    parent = _raw_text(f, 13)
    if parent is not None:
        header.dmc_mb = parent
    elif board_id is not None:
        header.dmc_mb = board_id

    status = _raw_int(f, 2)
    if status is not None:
        header.status = status
    start = _raw_int(f, 3)
    if start is not None:
        header.time_start = start
    end = _raw_int(f, 10)
    if end is not None:
        header.time_end = end
    index = _raw_int(f, 12)
    if index is not None:
        header.index = index


def extract_board_header(forest: List[TreeNode]) -> HeaderExtraction:
    """
    ツリーの最上位2階層から基板ヘッダを取り出す。

    - 最上位の最後のノードを @BATCH とみなす
    - その最後の子（@BATCH が無ければ最上位の最後のノード）を @BTEST とみなす
    - どちらも見つからなければデフォルト値のまま警告を返す
    - フィールドが壊れた @BATCH / @BTEST もヘッダとして扱い、
      読める項目だけを使ってエラーを返す（配下のテストは捨てない）
    """
    header = BoardHeader()
    warnings: List[str] = []
    errors: List[str] = []

    batch_node: Optional[TreeNode] = None
    btest_node: Optional[TreeNode] = None

    last = forest[-1] if forest else None
    if last is not None and isinstance(last.record, BatchRecord):
        _apply_batch(header, last.record)
        batch_node = last
    elif last is not None and _is_broken(last, "@BATCH"):
        _apply_broken_batch(header, last.record)
        errors.append(f"Malformed BATCH record (line {last.line_no}, {last.record.reason}): {last.record.raw}")
        batch_node = last
    else:
        warnings.append(MISSING_BATCH)

    if batch_node is not None:
        candidate = batch_node.branches[-1] if batch_node.branches else None
    else:
        candidate = last

    if candidate is not None and isinstance(candidate.record, BoardTestRecord):
        _apply_btest(header, candidate.record)
        btest_node = candidate
    elif candidate is not None and _is_broken(candidate, "@BTEST"):
        _apply_broken_btest(header, candidate.record)
        errors.append(
            f"Malformed BTEST record (line {candidate.line_no}, {candidate.record.reason}): {candidate.record.raw}"
        )
        btest_node = candidate
    else:
        warnings.append(MISSING_BTEST)

    if btest_node is not None:
        test_nodes = btest_node.branches
    elif batch_node is not None:
        test_nodes = batch_node.branches
    else:
        test_nodes = forest

    return HeaderExtraction(header=header, test_nodes=test_nodes, warnings=warnings, errors=errors)
