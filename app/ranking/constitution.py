"""
中医九种体质 -> 偏好的食性（四气）与功效

key 用中文体质名，同时接受英文别名（如 "yang-deficiency"）。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional


@dataclass(frozen=True)
class ConstitutionPreference:
    constitution: str
    natures: FrozenSet[str]
    effects: FrozenSet[str]


def _pref(name: str, natures: tuple, effects: tuple) -> ConstitutionPreference:
    return ConstitutionPreference(name, frozenset(natures), frozenset(effects))


CONSTITUTION_PREFERENCES: Dict[str, ConstitutionPreference] = {
    "平和质": _pref("平和质", ("平",), ("养生",)),
    "气虚质": _pref("气虚质", ("温", "平"), ("补气",)),
    "阳虚质": _pref("阳虚质", ("温", "热"), ("温阳",)),
    "阴虚质": _pref("阴虚质", ("凉", "平"), ("滋阴",)),
    "痰湿质": _pref("痰湿质", ("温", "平"), ("祛湿", "化痰")),
    "湿热质": _pref("湿热质", ("凉", "寒"), ("清热", "利湿")),
    "血瘀质": _pref("血瘀质", ("温",), ("活血",)),
    "气郁质": _pref("气郁质", ("平", "温"), ("理气", "疏肝")),
    "特禀质": _pref("特禀质", ("平",), ("益气固表",)),
}

CONSTITUTION_ALIASES: Dict[str, str] = {
    "balanced": "平和质",
    "qi-deficiency": "气虚质",
    "yang-deficiency": "阳虚质",
    "yin-deficiency": "阴虚质",
    "phlegm-dampness": "痰湿质",
    "damp-heat": "湿热质",
    "blood-stasis": "血瘀质",
    "qi-stagnation": "气郁质",
    "special": "特禀质",
}


def preference_for(constitution: Optional[str]) -> Optional[ConstitutionPreference]:
    if not constitution:
        return None
    key = constitution.strip()
    if key in CONSTITUTION_PREFERENCES:
        return CONSTITUTION_PREFERENCES[key]
    alias = CONSTITUTION_ALIASES.get(key.lower().replace("_", "-").replace(" ", "-"))
    return CONSTITUTION_PREFERENCES.get(alias) if alias else None
