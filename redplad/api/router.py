"""
ReDPlAD — Main API Router

Aggregates all sub-routers under a single prefix so that ``redplad.main``
can mount the entire API surface with one ``include_router`` call.
"""

from fastapi import APIRouter

from redplad.api import admin, chat, community, matching, profiles, quiz, uploads

router = APIRouter()

router.include_router(profiles.router, prefix="/profiles", tags=["Profiles"])
router.include_router(matching.router, prefix="/matching", tags=["Matching"])
router.include_router(chat.router, prefix="/chat", tags=["Chat"])
router.include_router(quiz.router, prefix="/quiz", tags=["Cultural Quiz"])
router.include_router(community.router, prefix="/community", tags=["Community"])
router.include_router(uploads.router, prefix="/uploads", tags=["Uploads"])
router.include_router(admin.router, prefix="/admin", tags=["Admin"])
