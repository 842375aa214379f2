from fastapi import APIRouter

from app.api.auth import router as auth_router
from app.api.chat import router as chat_router
from app.api.interests import router as interests_router
from app.api.matches import router as matches_router
from app.api.matching import router as matching_router
from app.api.users import router as users_router

router = APIRouter()

router.include_router(auth_router, prefix="/auth", tags=["auth"])
router.include_router(users_router)
router.include_router(interests_router)
router.include_router(matches_router)
router.include_router(chat_router)
router.include_router(matching_router)


@router.get("/", tags=["root"])
def read_root() -> dict[str, str]:
    return {"message": "Welcome to the MatchFyn API"}
