# src/ictlogreader/logic/timestamp.py

from __future__ import annotations

from datetime import datetime

# YYMMDDhhmmss の各桁位置
_YEAR = 10 ** 10
_MONTH = 10 ** 8
_DAY = 10 ** 6
_HOUR = 10 ** 4
_MINUTE = 10 ** 2


def pack_datetime(dt: datetime) -> int:
    """
    datetime をログと同じ12桁の YYMMDDhhmmss 整数に変換する。

    例:
        datetime(2024, 1, 15, 14, 30, 0) -> 240115143000
    """
    return (
        (dt.year - 2000) * _YEAR
        + dt.month * _MONTH
        + dt.day * _DAY
        + dt.hour * _HOUR
        + dt.minute * _MINUTE
        + dt.second
    )


def _split_packed(x: int) -> tuple[int, int, int, int, int, int]:
    yy, x = divmod(x, _YEAR)
    mo, x = divmod(x, _MONTH)
    dd, x = divmod(x, _DAY)
    hh, x = divmod(x, _HOUR)
    mi, ss = divmod(x, _MINUTE)
    return yy, mo, dd, hh, mi, ss


def format_packed(x: int) -> str:
    """
    YYMMDDhhmmss -> "YY.MM.DD hh:mm:ss"

    例:
        240115143000 -> "24.01.15 14:30:00"
    """
    yy, mo, dd, hh, mi, ss = _split_packed(x)
    return f"{yy:02d}.{mo:02d}.{dd:02d} {hh:02d}:{mi:02d}:{ss:02d}"


def unpack_packed(x: int) -> datetime:
    """YYMMDDhhmmss を datetime に戻す。不正な日付なら ValueError。"""
    yy, mo, dd, hh, mi, ss = _split_packed(x)
    return datetime(2000 + yy, mo, dd, hh, mi, ss)


def packed_mtime(timestamp: float) -> int:
    """ファイルの更新時刻（epoch 秒）をローカル時刻の YYMMDDhhmmss にする。"""
    return pack_datetime(datetime.fromtimestamp(timestamp))
