"""Platform publisher registry"""
from app.models.enums import Platform
from app.services.publish.platforms import instagram, tiktok, youtube

PUBLISHERS = {
    Platform.YOUTUBE: youtube.publish,
    Platform.TIKTOK: tiktok.publish,
    Platform.INSTAGRAM: instagram.publish,
}
