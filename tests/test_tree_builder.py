from ictlogreader.models.log_record import (
    AnalogRecord,
    BatchRecord,
    BlockRecord,
    BoardTestRecord,
    ErrorRecord,
    Lim2Record,
    ReportRecord,
    ShortsDestRecord,
    ShortsSourceRecord,
    UserDefinedRecord,
)
from ictlogreader.parser.record_parser import parse_log_text
from ictlogreader.parser.tree_builder import build_tree, record_kind


def _tree(text):
    return build_tree(parse_log_text(text))


def test_sample_log_shape(sample_log_text):
    forest = _tree(sample_log_text)

    assert len(forest) == 1
    batch = forest[0]
    assert isinstance(batch.record, BatchRecord)
    assert len(batch.branches) == 1

    btest = batch.branches[0]
    assert isinstance(btest.record, BoardTestRecord)
    kinds = [record_kind(n.record) for n in btest.branches]
    assert kinds == ["pins", "shorts", "block", "block", "user", "user", "user"]


def test_shorts_source_owns_destinations(sample_log_text):
    btest = _tree(sample_log_text)[0].branches[0]
    shorts = btest.branches[1]
    src = shorts.branches[0]
    assert isinstance(src.record, ShortsSourceRecord)
    assert isinstance(src.branches[0].record, ShortsDestRecord)


def test_limit_is_first_branch_and_report_follows(sample_log_text):
    btest = _tree(sample_log_text)[0].branches[0]
    block = btest.branches[3]
    assert isinstance(block.record, BlockRecord)

    analog = block.branches[0]
    assert isinstance(analog.record, AnalogRecord)
    assert isinstance(analog.branches[0].record, Lim2Record)
    assert isinstance(analog.branches[1].record, ReportRecord)


def test_file_order_is_preserved():
    forest = _tree("\n".join([
        "{@BLOCK|1%u1|00",
        "{@A-RES|0|1.0|a",
        "{@A-RES|0|2.0|b",
        "{@A-RES|0|3.0|c",
    ]))
    block = forest[0]
    assert [n.record.subtest for n in block.branches] == ["a", "b", "c"]
    assert [n.line_no for n in block.branches] == [2, 3, 4]


def test_user_directive_leaves_block():
    forest = _tree("\n".join([
        "{@BTEST|DMC1|00|240115143000|42|0|all|default|n|n|240115143042|00|1",
        "{@BLOCK|1%u1|00",
        "{@A-RES|0|1.0|a",
        "{@Programming_time|1500msec}",
    ]))
    btest = forest[0]
    assert isinstance(btest.branches[-1].record, UserDefinedRecord)
    assert len(btest.branches[0].branches) == 1


def test_orphan_limit_at_top_level_becomes_error():
    forest = _tree("{@LIM2|1|0}")
    assert len(forest) == 1
    assert isinstance(forest[0].record, ErrorRecord)
    assert "cannot be nested" in forest[0].record.reason


def test_illegal_nesting_is_attached_to_innermost_node():
    forest = _tree("\n".join([
        "{@BLOCK|1%u1|00",
        "{@LIM2|1|0}",
        "{@A-RES|0|1.0|a",
    ]))
    block = forest[0]
    assert isinstance(block.branches[0].record, ErrorRecord)
    # エラー行の後も通常どおり組み立てが続く
    assert isinstance(block.branches[1].record, AnalogRecord)


def test_malformed_record_keeps_its_place():
    forest = _tree("\n".join([
        "{@BLOCK|1%u1|00",
        "{@A-RES|x|1.0|a",
        "{@LIM2|1|0}",
    ]))
    bad = forest[0].branches[0]
    assert isinstance(bad.record, ErrorRecord)
    assert record_kind(bad.record) == "analog"
    assert isinstance(bad.branches[0].record, Lim2Record)


def test_untagged_line_is_a_leaf_under_current_node():
    forest = _tree("\n".join([
        "{@BLOCK|1%u1|00",
        "{@A-RES|0|1.0|a",
        "garbage",
        "{@A-RES|0|2.0|b",
    ]))
    block = forest[0]
    first = block.branches[0]
    assert isinstance(first.branches[0].record, ErrorRecord)
    assert [n.record.subtest for n in block.branches] == ["a", "b"]


def test_headerless_tests_are_roots():
    forest = _tree("{@TS|0|0|0|0\n{@PF|pins|0|10")
    assert [record_kind(n.record) for n in forest] == ["shorts", "pins"]
