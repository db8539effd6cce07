from datetime import datetime

import pytest

from ictlogreader.logic.timestamp import format_packed, pack_datetime, packed_mtime, unpack_packed


def test_format_packed():
    assert format_packed(240115143000) == "24.01.15 14:30:00"
    assert format_packed(int("240115143000")) == "24.01.15 14:30:00"


def test_format_zero():
    assert format_packed(0) == "00.00.00 00:00:00"


def test_pack_datetime():
    assert pack_datetime(datetime(2024, 1, 15, 14, 30, 0)) == 240115143000
    assert pack_datetime(datetime(2031, 12, 31, 23, 59, 59)) == 311231235959


def test_pack_unpack_round_trip():
    dt = datetime(2024, 1, 15, 14, 30, 5)
    assert unpack_packed(pack_datetime(dt)) == dt


def test_unpack_invalid_date():
    with pytest.raises(ValueError):
        unpack_packed(241315143000)


def test_packed_mtime_uses_local_time():
    stamp = datetime(2024, 3, 1, 8, 0, 0).timestamp()
    assert packed_mtime(stamp) == 240301080000
