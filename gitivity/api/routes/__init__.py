from fastapi import APIRouter, Depends

from gitivity.api.dependencies import require_debug_access
from gitivity.api.routes.cache import router as cache_router
from gitivity.api.routes.debug import router as debug_router
from gitivity.api.routes.leaderboard import router as leaderboard_router
from gitivity.api.routes.users import router as users_router
from gitivity.api.routes.validation import router as validation_router

router = APIRouter()

router.include_router(users_router, prefix="/users", tags=["users"])
router.include_router(validation_router, prefix="/validate-user", tags=["users"])
router.include_router(leaderboard_router, prefix="/leaderboard", tags=["leaderboard"])
router.include_router(cache_router, prefix="/cache", tags=["cache"])
router.include_router(
    debug_router,
    prefix="/debug",
    tags=["debug"],
    dependencies=[Depends(require_debug_access)],
)
