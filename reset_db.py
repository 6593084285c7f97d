from app.core.config import get_settings
from app.core.database import Base, build_engine, init_db


def reset_tables():
    engine = build_engine(get_settings().DATABASE_URL)
    try:
        init_db(engine)
        print("🗑️  正在删除推荐相关的表...")
        Base.metadata.drop_all(bind=engine)
        Base.metadata.create_all(bind=engine)
        print("✅ 表已重建: " + ", ".join(sorted(Base.metadata.tables)))
    finally:
        engine.dispose()


if __name__ == "__main__":
    reset_tables()
