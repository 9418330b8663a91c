"""Enumerations stored as plain strings in the database"""
from enum import Enum


class Platform(str, Enum):
    """Platforms a video can be cross-posted to"""
    YOUTUBE = "youtube"
    TIKTOK = "tiktok"
    INSTAGRAM = "instagram"

    @property
    def display_name(self) -> str:
        return {"youtube": "YouTube", "tiktok": "TikTok", "instagram": "Instagram"}[self.value]


class PostStatus(str, Enum):
    PENDING = "pending"
    UPLOADING = "uploading"
    PROCESSING = "processing"
    PUBLISHED = "published"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (PostStatus.PUBLISHED, PostStatus.FAILED)


# Forward-only lifecycle: pending -> (uploading|processing)* -> published|failed
ALLOWED_TRANSITIONS = {
    PostStatus.PENDING: {PostStatus.UPLOADING, PostStatus.PROCESSING, PostStatus.PUBLISHED, PostStatus.FAILED},
    PostStatus.UPLOADING: {PostStatus.UPLOADING, PostStatus.PROCESSING, PostStatus.PUBLISHED, PostStatus.FAILED},
    PostStatus.PROCESSING: {PostStatus.PROCESSING, PostStatus.PUBLISHED, PostStatus.FAILED},
    PostStatus.PUBLISHED: set(),
    PostStatus.FAILED: set(),
}
