"""
数据库配置 - 持久化层
所有房态、预订、入住与收款的变更都在单个事务内完成
"""
import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, declarative_base, Session

from roomledger.config import settings

logger = logging.getLogger(__name__)

SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL

_connect_args = {"check_same_thread": False} if SQLALCHEMY_DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args=_connect_args)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """依赖注入：获取数据库会话"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def transaction(db: Session) -> Iterator[Session]:
    """
    工作单元：成功则提交，任何异常则整体回滚并重新抛出

    用法：
        with transaction(self.db):
            ...  # 房态 + 单据 + 收款的所有写入
    """
    try:
        yield db
        db.commit()
    except ValueError as e:
        # 业务拒绝（LedgerError 及入参错误）
        db.rollback()
        logger.warning(f"Transaction rolled back: {e}")
        raise
    except Exception:
        db.rollback()
        logger.exception("Transaction rolled back on unexpected error")
        raise


def init_db():
    """初始化数据库表"""
    from roomledger.models import ontology  # noqa
    Base.metadata.create_all(bind=engine)

    # 启用 WAL 模式以提高并发性能
    if engine.dialect.name == "sqlite":
        with engine.connect() as conn:
            conn.execute(text("PRAGMA journal_mode=WAL"))
            conn.execute(text("PRAGMA synchronous=NORMAL"))
            conn.commit()
    logger.info("Database initialized")
