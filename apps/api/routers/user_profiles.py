"""
User Profiles API Router

A user can read and write only their own profile. Choosing an active plan
goes through the plan editor's activation check.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from uuid import UUID
import logging

from core.auth import get_current_user_id
from core.database import get_db
from core.exceptions import ForbiddenError, NotFoundError
from models import UserProfile
from schemas import UserProfileResponse, UserProfileUpsert
from services.plan_editor import ensure_plan_activatable
from services.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/user-profiles", tags=["User Profiles"])


def _require_self(path_user_id: UUID, current_user_id: UUID) -> None:
    if path_user_id != current_user_id:
        raise ForbiddenError("You can only access your own profile")


@router.get("/{user_id}", response_model=UserProfileResponse)
async def get_profile(
    user_id: UUID,
    current_user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    _require_self(user_id, current_user_id)
    profile = db.query(UserProfile).filter(UserProfile.id == user_id).first()
    if not profile:
        raise NotFoundError("User profile", str(user_id))
    return profile


@router.put("/{user_id}", response_model=UserProfileResponse)
async def upsert_profile(
    user_id: UUID,
    request: UserProfileUpsert,
    current_user_id: UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db),
):
    """
    Create or update the caller's profile.

    Setting `active_plan_id` requires a plan the caller owns in which every
    exercise already has a progression.
    """
    _require_self(user_id, current_user_id)
    changes = request.model_dump(exclude_unset=True)

    profile = db.query(UserProfile).filter(UserProfile.id == user_id).first()
    if profile is None:
        profile = UserProfile(id=user_id, first_name="")

    if changes.get("first_name") is not None:
        profile.first_name = changes["first_name"]
    if "active_plan_id" in changes:
        plan_id = changes["active_plan_id"]
        if plan_id is not None:
            ensure_plan_activatable(db, user_id, plan_id)
            logger.info(
                "Plan activated",
                extra={"extra_fields": {"user_id": str(user_id), "plan_id": str(plan_id)}},
            )
        profile.active_plan_id = plan_id

    UnitOfWork(db).add("user_profiles", [profile]).commit()
    return profile
