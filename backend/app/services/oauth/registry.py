"""OAuth provider registry keyed by platform"""
from app.models.enums import Platform
from app.services.oauth.base import OAuthProvider
from app.services.oauth.platforms import instagram, tiktok, youtube

OAUTH_PROVIDERS = {
    Platform.YOUTUBE: youtube.provider,
    Platform.TIKTOK: tiktok.provider,
    Platform.INSTAGRAM: instagram.provider,
}


def get_provider(platform: Platform) -> OAuthProvider:
    return OAUTH_PROVIDERS[Platform(platform)]
