"""Videos API routes"""
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session

from app.core.security import AuthContext, require_auth
from app.db.session import get_db
from app.schemas.video import VideoResponse
from app.services import video_service
from app.services.storage.object_store import ObjectStore, get_object_store

router = APIRouter(prefix="/api/videos", tags=["videos"])


def _video_json(video) -> dict:
    return VideoResponse.model_validate(video).model_dump(mode="json")


@router.post("/upload")
async def upload_video(
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store)
):
    video = await video_service.upload_video(auth, file, title, description, db, store)
    return {"success": True, "video": _video_json(video)}


@router.get("")
def list_videos(auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    return {"videos": [_video_json(v) for v in video_service.list_videos(auth, db)]}


@router.get("/{video_id}")
def get_video(video_id: str, auth: AuthContext = Depends(require_auth), db: Session = Depends(get_db)):
    return {"video": _video_json(video_service.get_video(auth, video_id, db))}


@router.delete("/{video_id}")
async def delete_video(
    video_id: str,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store)
):
    await video_service.delete_video(auth, video_id, db, store)
    return {"success": True}
