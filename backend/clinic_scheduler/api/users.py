from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_
from typing import List, Optional
import logging

from clinic_scheduler.api.auth import require_admin
from clinic_scheduler.core.config import settings
from clinic_scheduler.core.exception_handler import BusinessHTTPException, ResourceHTTPException
from clinic_scheduler.core.security import get_hash_pwd
from clinic_scheduler.db.base import get_db
from clinic_scheduler.models.user import User, parse_user_role
from clinic_scheduler.schemas.response import ResponseModel, DeleteResponse
from clinic_scheduler.schemas.user import CurrentUser, UserCreate, UserUpdate, UserItem
from clinic_scheduler.services.admin_helpers import get_or_404, current_section, assign_section
from clinic_scheduler.services.audit_service import record_audit, snapshot

logger = logging.getLogger(__name__)
router = APIRouter()


async def _user_item(db: AsyncSession, user: User) -> UserItem:
    item = UserItem.model_validate(user)
    section = await current_section(db, user.id)
    if section is not None:
        item.section_id = section.id
        item.section_name = section.name
    return item


async def _check_unique(db: AsyncSession, username: Optional[str], email: Optional[str], exclude_id: Optional[int] = None):
    conditions = []
    if username:
        conditions.append(User.username == username)
    if email:
        conditions.append(User.email == email)
    if not conditions:
        return
    stmt = select(User.id).where(or_(*conditions))
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    if (await db.execute(stmt)).first() is not None:
        raise BusinessHTTPException(
            code=settings.REQ_ERROR_CODE,
            msg="El email o nombre de usuario ya existe",
            status_code=400
        )


@router.get("", response_model=ResponseModel[List[UserItem]])
async def list_users(
    role: Optional[str] = None,
    include_inactive: bool = False,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin)
):
    """List user accounts (passwords never leave the server)"""
    stmt = select(User).order_by(User.last_name, User.first_name)
    if not include_inactive:
        stmt = stmt.where(User.is_active.is_(True))
    if role:
        try:
            stmt = stmt.where(User.role == parse_user_role(role))
        except ValueError as e:
            raise BusinessHTTPException(code=settings.REQ_ERROR_CODE, msg=str(e), status_code=400)
    result = await db.execute(stmt)
    return ResponseModel(data=[await _user_item(db, u) for u in result.scalars().all()])


@router.get("/{user_id}", response_model=ResponseModel[UserItem])
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin)
):
    user = await get_or_404(db, User, user_id, "Usuario no encontrado")
    return ResponseModel(data=await _user_item(db, user))


@router.post("", status_code=201, response_model=ResponseModel[UserItem])
async def create_user(
    data: UserCreate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin)
):
    """Create a user account"""
    try:
        email = data.email.lower()
        await _check_unique(db, data.username, email)

        user = User(
            username=data.username.strip(),
            email=email,
            hashed_password=get_hash_pwd(data.password),
            first_name=data.first_name.strip(),
            last_name=data.last_name.strip(),
            phone=data.phone,
            role=parse_user_role(data.role),
            is_active=True,
        )
        db.add(user)
        await db.flush()
        if data.section_id is not None:
            await assign_section(db, user, data.section_id)
            await db.flush()

        await record_audit(db, "sgh_users", user.id, "INSERT", current_user.id, request, new_values=snapshot(user))
        await db.commit()

        logger.info(f"User created: {user.username} ({data.role})")
        return ResponseModel(data=await _user_item(db, user), message="Usuario creado")
    except BusinessHTTPException:
        raise
    except Exception as e:
        logger.error(f"Error creating user: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al crear usuario", status_code=500)


@router.put("/{user_id}", response_model=ResponseModel[UserItem])
async def update_user(
    user_id: int,
    data: UserUpdate,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin)
):
    """Partial update; a new password is hashed when present"""
    try:
        user = await get_or_404(db, User, user_id, "Usuario no encontrado")
        old_values = snapshot(user)
        changes = data.model_dump(exclude_unset=True)

        if changes.get("email"):
            changes["email"] = changes["email"].lower()
        await _check_unique(db, changes.get("username"), changes.get("email"), exclude_id=user_id)

        password = changes.pop("password", None)
        section_id = changes.pop("section_id", None)
        for field, value in changes.items():
            if value is None:
                if field == "phone":
                    user.phone = None
                continue
            setattr(user, field, parse_user_role(value) if field == "role" else value)
        if password:
            user.hashed_password = get_hash_pwd(password)
        await db.flush()
        if section_id is not None:
            await assign_section(db, user, section_id)
            await db.flush()

        await record_audit(db, "sgh_users", user.id, "UPDATE", current_user.id, request, old_values, snapshot(user))
        await db.commit()
        return ResponseModel(data=await _user_item(db, user), message="Usuario actualizado")
    except (BusinessHTTPException, ResourceHTTPException):
        raise
    except Exception as e:
        logger.error(f"Error updating user {user_id}: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al actualizar usuario", status_code=500)


@router.delete("/{user_id}", response_model=ResponseModel[DeleteResponse])
async def delete_user(
    user_id: int,
    request: Request,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_admin)
):
    """Soft delete; an admin cannot delete their own account"""
    try:
        if user_id == current_user.id:
            raise BusinessHTTPException(
                code=settings.REQ_ERROR_CODE,
                msg="No puede eliminar su propio usuario",
                status_code=400
            )
        user = await get_or_404(db, User, user_id, "Usuario no encontrado")
        old_values = snapshot(user)
        user.is_active = False
        await db.flush()
        await record_audit(db, "sgh_users", user_id, "DELETE", current_user.id, request, old_values, snapshot(user))
        await db.commit()

        logger.info(f"User deactivated: {user_id}")
        return ResponseModel(data=DeleteResponse(id=user_id, detail="Usuario eliminado"))
    except (BusinessHTTPException, ResourceHTTPException):
        raise
    except Exception as e:
        logger.error(f"Error deleting user {user_id}: {str(e)}")
        raise BusinessHTTPException(code=settings.UNKNOWN_ERROR_CODE, msg="Error al eliminar usuario", status_code=500)
