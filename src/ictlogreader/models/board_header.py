# src/ictlogreader/models/board_header.py

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

DEFAULT_PRODUCT_ID = "NoID"
DEFAULT_DMC = "NoDMC"
DEFAULT_DMC_MB = "NoMB"


@dataclass
class BoardHeader:
    """
    基板1枚分のヘッダ情報（@BATCH / @BTEST レコードから抽出したもの）。
    """
    product_id: str = DEFAULT_PRODUCT_ID
    dmc: str = DEFAULT_DMC
    dmc_mb: str = DEFAULT_DMC_MB     # 親パネル（マザーボード）の DMC
    index: int = 1                   # パネル内の基板番号
    status: int = 0
    time_start: int = 0              # YYMMDDhhmmss
    time_end: int = 0                # YYMMDDhhmmss

    # @BATCH の補足項目
    product_rev: Optional[str] = None
    fixture_id: Optional[str] = None
    operator_id: Optional[str] = None
    testplan_id: Optional[str] = None
