import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from carmarket.db import crud
from carmarket.db.database import get_db
from carmarket.schemas.user import RoleUpdateRequest, UserResponse, UsersResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/users", tags=["users"])

# Directory filters and the role each one selects
USER_FILTERS = {
    "all": None,
    "ambassador": "ambassador",
    "gallery": "gallery",
}

ROLE_LABELS = {
    "member": "Member",
    "gallery": "Gallery",
    "ambassador": "Ambassador",
}

ASSIGNABLE_ROLES = {"member", "ambassador"}


def _user_response(profile) -> UserResponse:
    display_name = profile.full_name or "Unnamed"
    if profile.gallery_name:
        display_name = f"{display_name} ({profile.gallery_name})"
    return UserResponse(
        id=profile.id,
        full_name=profile.full_name,
        display_name=display_name,
        role=profile.role,
        role_label=ROLE_LABELS.get(profile.role, profile.role or "Unknown"),
        whatsapp=profile.whatsapp,
        email=profile.email,
        gallery_name=profile.gallery_name,
    )


@router.get("", response_model=UsersResponse)
async def list_users(filter: str = "all", db: AsyncSession = Depends(get_db)):
    if filter not in USER_FILTERS:
        raise HTTPException(status_code=400, detail=f"Unknown filter: {filter}")
    try:
        profiles = await crud.get_profiles(db, USER_FILTERS[filter])
    except SQLAlchemyError as e:
        logger.error(f"Error fetching users: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    return UsersResponse(
        filter=filter,
        total=len(profiles),
        users=[_user_response(p) for p in profiles],
    )


@router.patch("/{user_id}/role")
async def change_role(user_id: str, request: RoleUpdateRequest, db: AsyncSession = Depends(get_db)):
    if request.role not in ASSIGNABLE_ROLES:
        raise HTTPException(status_code=422, detail=f"Role cannot be assigned: {request.role}")
    try:
        updated = await crud.update_profile_role(db, user_id, request.role)
    except SQLAlchemyError as e:
        logger.error(f"Error updating role of user {user_id}: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    if not updated:
        raise HTTPException(status_code=404, detail="User not found")
    logger.info(f"User {user_id} role -> {request.role}")
    return {"id": user_id, "role": request.role}


@router.delete("/{user_id}")
async def remove_user(user_id: str, db: AsyncSession = Depends(get_db)):
    try:
        deleted = await crud.delete_profile(db, user_id)
    except SQLAlchemyError as e:
        logger.error(f"Error deleting user {user_id}: {e}")
        raise HTTPException(status_code=502, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=404, detail="User not found")
    return {"id": user_id, "deleted": True}
