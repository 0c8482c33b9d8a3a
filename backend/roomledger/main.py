"""
RoomLedger 主应用入口
单店酒店的房态分配与结算服务
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from roomledger.config import settings
from roomledger.database import init_db
from roomledger.routers import rooms, reservations, checkin


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s"
    )

    # 初始化数据库
    init_db()

    # 注册事件处理器
    from roomledger.services.event_handlers import register_event_handlers
    register_event_handlers()

    yield


# 创建应用
app = FastAPI(
    title=f"{settings.APP_NAME} - 房态分配与结算引擎",
    description="房间、预订与入住的冲突检测、状态流转与收款对账",
    version="1.0.0",
    lifespan=lifespan
)

# CORS 配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 生产环境应限制具体域名
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册路由
app.include_router(rooms.router)
app.include_router(reservations.router)
app.include_router(checkin.router)


@app.get("/")
def root():
    """根路径"""
    return {
        "name": settings.APP_NAME,
        "version": "1.0.0",
        "docs": "/docs"
    }


@app.get("/health")
def health_check():
    """健康检查"""
    return {"status": "healthy"}
