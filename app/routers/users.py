"""
Users router.

POST   /users                     — register an employee (hr/admin)
GET    /users/me                  — profile + wellness aggregate
PATCH  /users/me/preferences      — notification preferences
POST   /users/me/surveys          — record a completed survey
DELETE /users/{id}                — anonymise (self or admin)
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, status

from app.core.errors import ForbiddenError
from app.core.security import get_current_user, require_staff
from app.models.user import User, UserRole
from app.schemas.checkin import WellnessSnapshot
from app.schemas.common import ApiResponse, ErrorResponse, ev, ok
from app.schemas.user import PreferencesUpdate, ProfileResponse, SurveyCompletion, UserCreate
from app.services import users as user_service
from app.services.engine import EngineContext, get_engine

router = APIRouter(prefix="/users", tags=["users"])


@router.post(
    "",
    status_code=status.HTTP_201_CREATED,
    response_model=ApiResponse[ProfileResponse],
    summary="Register an employee (hr/admin)",
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def register_user(
    body: UserCreate,
    user: User = Depends(require_staff),
    ctx: EngineContext = Depends(get_engine),
):
    if body.role != UserRole.employee and ev(user.role) != UserRole.admin.value:
        raise ForbiddenError("Only admins can create hr or admin accounts.")
    with ctx.unit_of_work():
        created = user_service.register_user(ctx.db, **body.model_dump())
    return ok(ProfileResponse(**user_service.get_profile(ctx.db, ctx.clock, created.id)), "User registered.")


@router.get(
    "/me",
    response_model=ApiResponse[ProfileResponse],
    summary="Current user's profile",
)
def get_me(
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    return ok(ProfileResponse(**user_service.get_profile(ctx.db, ctx.clock, user.id)))


@router.patch(
    "/me/preferences",
    response_model=ApiResponse[ProfileResponse],
    summary="Update notification preferences",
)
def update_preferences(
    body: PreferencesUpdate,
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    with ctx.unit_of_work():
        user_service.update_notification_preferences(
            ctx.db, user.id, **body.model_dump(exclude_unset=True)
        )
    return ok(ProfileResponse(**user_service.get_profile(ctx.db, ctx.clock, user.id)), "Preferences updated.")


@router.post(
    "/me/surveys",
    response_model=ApiResponse[WellnessSnapshot],
    summary="Record a completed survey",
)
def complete_survey(
    body: SurveyCompletion,
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    with ctx.unit_of_work():
        aggregate = user_service.record_survey_completion(ctx, user.id, body.survey_id)
    return ok(WellnessSnapshot(**aggregate.project(ctx.clock.today()).to_dict()), "Survey recorded.")


@router.delete(
    "/{user_id}",
    response_model=ApiResponse[None],
    summary="Anonymise a user (self or admin)",
    responses={403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def anonymize_user(
    user_id: str,
    user: User = Depends(get_current_user),
    ctx: EngineContext = Depends(get_engine),
):
    if user_id != user.id and ev(user.role) != UserRole.admin.value:
        raise ForbiddenError()
    with ctx.unit_of_work():
        user_service.anonymize_user(ctx.db, ctx.clock, user_id)
    return ok(None, "User anonymised.")
