# 读取 .env 配置
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str = "sqlite:///./recommendation.db"

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    # Recommendation
    DEFAULT_RECOMMENDATION_LIMIT: int = 20
    MAX_RECOMMENDATION_LIMIT: int = 100
    CANDIDATE_MULTIPLIER: int = 3
    PROFILE_MATCH_BONUS: float = 0.2
    COLD_START_PRIOR: float = 0.1
    DEFAULT_ALGORITHM: str = "content-based"

    # 外部依赖超时 / 打分预算
    FETCH_TIMEOUT_SECONDS: float = 2.0
    SCORING_BUDGET_SECONDS: float = 0.5

    # 推荐日志 & 实验
    LOG_RETENTION_DAYS: int = 90
    DEFAULT_EXPERIMENT_DURATION_DAYS: int = 30
    USER_STATS_DEFAULT_DAYS: int = 30

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"  # 忽略多余的环境变量
    )


@lru_cache
def get_settings() -> Settings:
    """进程内只构造一次，由启动代码显式传给各个服务。"""
    return Settings()
