"""
Contexto de request a partir del token bearer.

El token lo emite el servicio de autenticación externo; aquí solo se valida
y se leen los claims `sub` (id de usuario) y `branch_id`.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional
import jwt
from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..config import settings
from ..application.dtos import RequestContext

bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user_id: int, branch_id: int, expires_minutes: int = 60) -> str:
    """Emite un token compatible (herramientas y pruebas)"""
    to_encode = {
        "sub": str(user_id),
        "branch_id": branch_id,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=expires_minutes),
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.jwt_algorithm)


def decode_context(token: str, device_id: Optional[str] = None) -> RequestContext:
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token inválido")
    user_id = payload.get("sub")
    branch_id = payload.get("branch_id")
    if user_id is None or branch_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Credenciales inválidas")
    try:
        return RequestContext(branch_id=int(branch_id), user_id=int(user_id), device_id=device_id)
    except (TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Credenciales inválidas")


def get_request_context(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    x_device_id: Optional[str] = Header(default=None),
) -> RequestContext:
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No autenticado",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return decode_context(credentials.credentials, x_device_id)
