from __future__ import annotations

import re
from typing import Iterable

_WHITESPACE_RE = re.compile(r"\s+")


def normalize_tag(tag: str) -> str:
    """
    兴趣标签规范化（用于 (user, tag) 唯一键与标签匹配）

    - 去除首尾空白、压缩连续空白为单空格
    - 英文大小写统一：使用 casefold()
    """
    if not tag:
        return ""
    compact = _WHITESPACE_RE.sub(" ", tag.strip())
    return compact.casefold()


def normalize_tags(tags: Iterable[str]) -> list[str]:
    clean: list[str] = []
    for tag in tags or []:
        normalized = normalize_tag(tag)
        if normalized:
            clean.append(normalized)
    return list(dict.fromkeys(clean))
