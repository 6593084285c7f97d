# 数据库连接池生成器
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from dotenv import load_dotenv

# 1. 加载环境变量 (.env)，DATABASE_URL 可直接写在 .env 里
load_dotenv()

# 2. 定义 Base 类
# 所有的 ORM 表 (比如 UserInterestRow) 都要继承这个类
Base = declarative_base()


def build_engine(database_url: str, **kwargs) -> Engine:
    """
    创建数据库引擎 (Engine)

    pool_pre_ping=True: 每次从池子里拿连接前，先 ping 一下数据库，确保连接是活的
    SQLite 需要 check_same_thread=False，因为仓储层会在线程池里执行 Session
    """
    if database_url.startswith("sqlite"):
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        return create_engine(database_url, connect_args=connect_args, **kwargs)
    kwargs.setdefault("pool_recycle", 3600)
    return create_engine(database_url, pool_pre_ping=True, **kwargs)


def build_session_factory(engine: Engine) -> sessionmaker:
    # 这是一个“工厂类”，仓储每次操作都用它产生一个新的数据库会话
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> None:
    """建表（确保模型被导入后注册到 Base.metadata）。"""
    from app.data import sql_models  # noqa: F401

    Base.metadata.create_all(bind=engine)
