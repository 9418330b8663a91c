"""Cross-posting API routes"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.security import AuthContext, require_auth
from app.db.session import get_db
from app.models.enums import Platform
from app.schemas.posts import CreatePostsRequest, PostResponse, PostWithVideoResponse
from app.services.publish.base import PublishRequest
from app.services.publish.dispatcher import dispatch, list_posts
from app.services.storage.object_store import ObjectStore, get_object_store

publish_logger = logging.getLogger("publish")

router = APIRouter(prefix="/api/posts", tags=["posts"])


@router.post("/create")
async def create_posts(
    body: CreatePostsRequest,
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
    store: ObjectStore = Depends(get_object_store)
):
    """Publish a video to every requested platform; per-platform outcomes are in the posts"""
    requests = [
        PublishRequest(
            platform=p.platform.value,
            title=p.title,
            description=p.description,
            tags=list(p.tags),
        )
        for p in body.platforms
    ]
    posts = await dispatch(auth, body.video_id, requests, db, store)
    return {
        "success": True,
        "posts": [PostResponse.model_validate(p).model_dump(mode="json") for p in posts]
    }


@router.get("")
def get_posts(
    video_id: Optional[str] = Query(None),
    platform: Optional[Platform] = Query(None),
    auth: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db)
):
    """Post history, newest first, with each post's video title and file name"""
    posts = list_posts(auth, db, video_id=video_id, platform=platform.value if platform else None)
    return {"posts": [PostWithVideoResponse.model_validate(p).model_dump(mode="json") for p in posts]}
