from fastapi import APIRouter, Depends
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_
from typing import Optional
import logging

from clinic_scheduler.core.config import settings
from clinic_scheduler.core.datetime_utils import get_now_naive
from clinic_scheduler.core.exception_handler import AuthHTTPException, BusinessHTTPException
from clinic_scheduler.core.security import create_access_token, decode_access_token, token_expires_in_seconds, verify_pwd
from clinic_scheduler.db.base import get_db
from clinic_scheduler.models.user import User
from clinic_scheduler.schemas.response import ResponseModel
from clinic_scheduler.schemas.user import CurrentUser, LoginRequest, LoginResponse, LoginUser
from clinic_scheduler.services.admin_helpers import current_section

logger = logging.getLogger(__name__)
router = APIRouter()

oauth2_scheme = OAuth2PasswordBearer("/api/auth/login", auto_error=False)


async def _current_user_schema(db: AsyncSession, user: User) -> CurrentUser:
    section = await current_section(db, user.id)
    return CurrentUser(
        id=user.id,
        username=user.username,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role,
        is_active=user.is_active,
        section_id=section.id if section else None,
        section_name=section.name if section else None,
    )


@router.post("/login", response_model=ResponseModel[LoginResponse])
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    """Sign in with username or email"""
    try:
        identifier = data.identifier.strip()
        result = await db.execute(
            select(User).where(
                or_(User.username == identifier, User.email == identifier.lower()),
                User.is_active.is_(True),
            )
        )
        db_user = result.scalar_one_or_none()
        if not db_user or not verify_pwd(data.password, db_user.hashed_password):
            logger.warning(f"Login failed for {identifier}")
            raise AuthHTTPException(
                code=settings.LOGIN_FAILED_CODE,
                msg="Credenciales inválidas",
                status_code=401
            )

        current = await _current_user_schema(db, db_user)
        token = create_access_token(
            {"sub": str(db_user.id), "email": db_user.email, "role": current.role, "section_id": current.section_id}
        )
        db_user.last_login = get_now_naive()

        logger.info(f"User {db_user.username} logged in")
        return ResponseModel(
            data=LoginResponse(
                user=LoginUser(
                    id=db_user.id,
                    username=db_user.username,
                    email=db_user.email,
                    name=db_user.full_name,
                    role=current.role,
                    section_id=current.section_id,
                    section_name=current.section_name,
                ),
                token=token,
                expiresIn=token_expires_in_seconds(),
            )
        )
    except AuthHTTPException:
        raise
    except Exception as e:
        logger.error(f"Error during login: {str(e)}")
        raise BusinessHTTPException(
            code=settings.UNKNOWN_ERROR_CODE,
            msg="Error interno del servidor",
            status_code=500
        )


async def get_current_user(token: Optional[str] = Depends(oauth2_scheme), db: AsyncSession = Depends(get_db)) -> CurrentUser:
    """Resolve the bearer token into the signed-in user"""
    if not token:
        raise AuthHTTPException(
            code=settings.TOKEN_INVALID_CODE,
            msg="Token de acceso requerido",
            status_code=401
        )

    payload = decode_access_token(token)
    if not payload or payload.get("sub") is None:
        raise AuthHTTPException(
            code=settings.TOKEN_INVALID_CODE,
            msg="Token inválido o expirado",
            status_code=401
        )

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise AuthHTTPException(code=settings.TOKEN_INVALID_CODE, msg="Token inválido o expirado", status_code=401)

    result = await db.execute(select(User).where(User.id == user_id, User.is_active.is_(True)))
    db_user = result.scalar_one_or_none()
    if not db_user:
        raise AuthHTTPException(
            code=settings.USER_GET_FAILED_CODE,
            msg="Usuario no encontrado o inactivo",
            status_code=401
        )
    return await _current_user_schema(db, db_user)


def require_roles(*roles: str):
    """Dependency factory: the signed-in user must hold one of ``roles``."""
    allowed = set(roles)

    async def _checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in allowed:
            raise AuthHTTPException(
                code=settings.INSUFFICIENT_AUTHORITY_CODE,
                msg="No tiene permisos para realizar esta acción",
                status_code=403
            )
        return current_user

    return _checker


# Route gates
require_admin = require_roles("admin")
require_section_chief = require_roles("admin", "jefe")
require_report_access = require_roles("admin", "gerencia", "jefe")


@router.get("/me", response_model=ResponseModel[CurrentUser])
async def me(current_user: CurrentUser = Depends(get_current_user)):
    """Profile of the signed-in user"""
    return ResponseModel(data=current_user)


@router.post("/logout", response_model=ResponseModel[dict])
async def logout(current_user: CurrentUser = Depends(get_current_user)):
    """Tokens are stateless; the client drops its copy"""
    logger.info(f"User {current_user.username} logged out")
    return ResponseModel(data={"id": current_user.id}, message="Sesión cerrada")
