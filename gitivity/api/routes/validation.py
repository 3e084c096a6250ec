from fastapi import APIRouter, Depends, Query

from gitivity.api.dependencies import get_runtime
from gitivity.api.errors import to_http_exception
from gitivity.api.schemas.profile import UserExistsResponse
from gitivity.core.errors import GitivityError
from gitivity.services.runtime import GitivityRuntime

router = APIRouter()


@router.get(
    "",
    response_model=UserExistsResponse,
    summary="Check that a GitHub user exists",
)
async def validate_user(
    username: str = Query(..., min_length=1, max_length=39),
    runtime: GitivityRuntime = Depends(get_runtime),
) -> UserExistsResponse:
    try:
        exists = await runtime.github.user_exists(username)
    except GitivityError as e:
        raise to_http_exception(e, username) from e
    return UserExistsResponse(exists=exists)
