"""Profile API routes"""
from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from app.core.security import AuthContext, require_auth
from app.db.session import get_db
from app.models.user_profile import UserProfile
from app.schemas.profile import ProfileResponse, UpdateProfileRequest
from app.services import profile_service
from app.services.storage.object_store import ObjectStore, get_object_store

router = APIRouter(prefix="/api/profile", tags=["profile"])


def _profile_json(auth: AuthContext, profile: Optional[UserProfile], store: ObjectStore) -> dict:
    return ProfileResponse(
        user_id=auth.user_id,
        full_name=profile.full_name if profile else None,
        avatar_url=profile_service.avatar_url(profile, store),
        updated_at=profile.updated_at if profile else None,
    ).model_dump(mode="json")


@router.get("")
def get_profile(
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store)
):
    return {"profile": _profile_json(auth, profile_service.get_profile(auth, db), store)}


@router.patch("/update")
def update_profile(
    request: UpdateProfileRequest,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store)
):
    profile = profile_service.update_full_name(auth, request.full_name, db)
    return {"message": "Profile updated successfully", "profile": _profile_json(auth, profile, store)}


@router.post("/avatar")
async def upload_avatar(
    avatar: Optional[UploadFile] = File(None),
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store)
):
    profile = await profile_service.upload_avatar(auth, avatar, db, store)
    body = _profile_json(auth, profile, store)
    return {"message": "Avatar uploaded successfully", "avatar_url": body["avatar_url"], "profile": body}


@router.delete("/avatar")
async def delete_avatar(
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store)
):
    profile = await profile_service.delete_avatar(auth, db, store)
    return {"message": "Avatar removed successfully", "profile": _profile_json(auth, profile, store)}
