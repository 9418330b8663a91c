"""Types shared by the platform publishers"""
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from app.models.enums import PostStatus


@dataclass(frozen=True)
class PublishRequest:
    """Per-platform title, description and tags for one publish attempt"""
    platform: str
    title: str
    description: str = ""
    tags: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class PublishResult:
    id: str
    url: str


# Publishers call this to report intermediate progress (uploading / processing)
StatusCallback = Callable[[PostStatus], Awaitable[None]]


async def report(on_status: Optional[StatusCallback], status: PostStatus) -> None:
    if on_status is not None:
        await on_status(status)


@dataclass(frozen=True)
class VideoFile:
    """Plain copy of the video columns a publisher reads.

    Publishers run concurrently on one session; a rollback in one of them
    expires every ORM instance, so they never touch the Video row itself.
    """
    id: str
    file_name: str
    file_path: str
    mime_type: str
    file_size: int

    @classmethod
    def from_model(cls, video) -> "VideoFile":
        return cls(
            id=str(video.id),
            file_name=video.file_name,
            file_path=video.file_path,
            mime_type=video.mime_type,
            file_size=video.file_size,
        )
