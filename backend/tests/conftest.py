"""
Pytest 配置和共享 fixtures
"""
import os

# 测试期间应用生命周期不落地数据库文件
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient
from decimal import Decimal

from roomledger.database import Base, get_db
from roomledger.models import ontology  # noqa
from roomledger.models.ontology import Attendant, AttendantRole, Room, RoomStatus
from roomledger.security.auth import create_access_token
from roomledger.main import app


@pytest.fixture(scope="function")
def db_engine():
    """创建内存数据库引擎"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """创建数据库会话"""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def client(db_session):
    """创建测试客户端"""
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ============== 认证相关 Fixtures ==============

def _attendant(db_session, username, name, role, is_active=True):
    attendant = Attendant(
        username=username,
        name=name,
        email=f"{username}@hotel.test",
        role=role,
        is_active=is_active
    )
    db_session.add(attendant)
    db_session.commit()
    db_session.refresh(attendant)
    return attendant


@pytest.fixture
def admin_user(db_session):
    """管理员"""
    return _attendant(db_session, "admin", "管理员", AttendantRole.ADMIN)


@pytest.fixture
def attendant_user(db_session):
    """前台"""
    return _attendant(db_session, "front1", "前台小王", AttendantRole.ATTENDANT)


@pytest.fixture
def admin_token(admin_user):
    return create_access_token(admin_user.id, admin_user.role)


@pytest.fixture
def attendant_token(attendant_user):
    return create_access_token(attendant_user.id, attendant_user.role)


@pytest.fixture
def admin_auth_headers(admin_token):
    """返回管理员认证的请求头"""
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def auth_headers(attendant_token):
    """返回前台认证的请求头"""
    return {"Authorization": f"Bearer {attendant_token}"}


# ============== 实体相关 Fixtures ==============

def _room(db_session, room_number, room_type="Single", price="50.00",
          status=RoomStatus.AVAILABLE):
    room = Room(
        room_number=room_number,
        room_type=room_type,
        price_per_day=Decimal(price),
        status=status
    )
    db_session.add(room)
    db_session.commit()
    db_session.refresh(room)
    return room


@pytest.fixture
def sample_room(db_session):
    """创建101房间（Single，50/天）"""
    return _room(db_session, "101")


@pytest.fixture
def sample_room_102(db_session):
    """创建102房间（Single，50/天）"""
    return _room(db_session, "102")


@pytest.fixture
def sample_room_201(db_session):
    """创建201房间（Double，80/天）"""
    return _room(db_session, "201", room_type="Double", price="80.00")
