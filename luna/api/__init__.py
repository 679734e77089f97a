from luna.api.auth import router as auth_router
from luna.api.identities import router as identities_router
from luna.api.partners import router as partners_router
from luna.api.audio import router as audio_router
from luna.api.diary import router as diary_router

__all__ = [
    "auth_router",
    "identities_router",
    "partners_router",
    "audio_router",
    "diary_router",
]
