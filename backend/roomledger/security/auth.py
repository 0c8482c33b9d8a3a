"""
认证与授权模块
账号由外部身份系统开通；本模块只校验 Bearer 令牌并解析出经办人
"""
import logging
from datetime import datetime, timedelta, UTC
from typing import List
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session
from roomledger.config import settings
from roomledger.database import get_db
from roomledger.models.ontology import Attendant, AttendantRole

logger = logging.getLogger(__name__)

security = HTTPBearer()


def create_access_token(attendant_id: int, role: AttendantRole) -> str:
    """为已开通的经办人生成 JWT token"""
    expire = datetime.now(UTC) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode = {
        "sub": str(attendant_id),
        "role": role.value if isinstance(role, AttendantRole) else str(role),
        "exp": expire
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_token(token: str) -> dict:
    """解码 JWT token"""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="无效的认证凭证"
        )


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> Attendant:
    """获取当前经办人"""
    payload = decode_token(credentials.credentials)

    try:
        attendant_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="无效的认证凭证"
        )

    attendant = db.query(Attendant).filter(Attendant.id == attendant_id).first()
    if not attendant:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="用户不存在"
        )

    if not attendant.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="账号已停用"
        )

    return attendant


def require_role(allowed_roles: List[AttendantRole]):
    """角色权限校验"""
    def role_checker(current_user: Attendant = Depends(get_current_user)):
        if current_user.role not in allowed_roles:
            logger.warning(f"Attendant {current_user.id} denied, role={current_user.role.value}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="权限不足"
            )
        return current_user
    return role_checker


require_admin = require_role([AttendantRole.ADMIN])
