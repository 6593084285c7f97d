"""
服务模块入口。

注意：这里不要做“强导入”，否则导入 `app.services.exceptions` 时会连带加载整条推荐链路。
"""

from __future__ import annotations

from typing import Any

__all__ = ["RecommendationService"]


_LAZY_IMPORTS = {
    "RecommendationService": (".recommendation_service", "RecommendationService"),
}


def __getattr__(name: str) -> Any:
    if name not in _LAZY_IMPORTS:
        raise AttributeError(name)
    module_path, attr = _LAZY_IMPORTS[name]
    from importlib import import_module

    module = import_module(module_path, __name__)
    return getattr(module, attr)
