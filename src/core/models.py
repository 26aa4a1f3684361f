from __future__ import annotations
from typing import TypedDict, Optional, List, Union

Value = Union[str, int, float]


class MatchRecord(TypedDict, total=False):
    id: int
    date: str                 # DD.MM.YY o DD.MM.YYYY
    league: str
    home_team: str
    away_team: str
    score_ht: Value
    score: Value
    # Esito finale / primo tempo / goal-goal
    ms1: Value
    ms0: Value
    ms2: Value
    iy1: Value
    iy0: Value
    iy2: Value
    kg_var: Value
    kg_yok: Value
    # Solo closing
    cs_1x: Value
    cs_12: Value
    cs_2x: Value
    ms15_alt: Value
    ms15_ust: Value
    # Solo opening
    handicap_1: Value
    handicap_0: Value
    handicap_2: Value
    htft_11: Value
    htft_10: Value
    htft_12: Value
    htft_01: Value
    htft_00: Value
    htft_02: Value
    htft_21: Value
    htft_20: Value
    htft_22: Value
    # Comuni ad entrambi (offset diversi)
    iy15_alt: Value
    iy15_ust: Value
    ms25_alt: Value
    ms25_ust: Value
    ms35_alt: Value
    ms35_ust: Value
    tg_01: Value
    tg_23: Value
    tg_45: Value
    tg_6plus: Value


class DatasetMeta(TypedDict):
    total: int
    chunks: int
    type: str
    version: Optional[int]


MatchDataset = List[MatchRecord]
