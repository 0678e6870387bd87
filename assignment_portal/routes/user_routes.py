import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from assignment_portal.auth.permissions import Permission, require_permission
from assignment_portal.database import get_db
from assignment_portal.models.assignment import Assignment
from assignment_portal.models.submission import Submission
from assignment_portal.models.user import Role, User
from assignment_portal.routes.auth_routes import UserResponse

router = APIRouter(tags=['users'])

logger = logging.getLogger(__name__)

require_admin = require_permission(Permission.MANAGE_USERS)


class RoleUpdateRequest(BaseModel):
    role: Role


class UserActionResponse(BaseModel):
    message: str
    user: UserResponse


class MessageResponse(BaseModel):
    message: str


class AdminStatsResponse(BaseModel):
    total_users: int
    pending_approvals: int
    total_assignments: int
    total_submissions: int


def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='User not found')
    return user


@router.get('', response_model=list[UserResponse])
def list_users(db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    return db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()


@router.get('/pending', response_model=list[UserResponse])
def list_pending_users(db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    return (
        db.query(User)
        .filter(User.approved.is_(False))
        .order_by(User.created_at.desc(), User.id.desc())
        .all()
    )


@router.get('/admin/stats/overview', response_model=AdminStatsResponse)
def admin_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.VIEW_ADMIN_STATS)),
):
    return AdminStatsResponse(
        total_users=db.query(User).count(),
        pending_approvals=db.query(User).filter(User.approved.is_(False)).count(),
        total_assignments=db.query(Assignment).count(),
        total_submissions=db.query(Submission).count(),
    )


@router.post('/{user_id}/approve', response_model=UserActionResponse)
def approve_user(user_id: int, db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    user = get_user_or_404(db, user_id)
    user.approved = True
    db.commit()
    db.refresh(user)

    logger.info('Admin %s approved %s', current_user.id, user.email)
    return {'message': 'User approved successfully', 'user': user}


@router.patch('/{user_id}/role', response_model=UserActionResponse)
def update_user_role(
    user_id: int,
    data: RoleUpdateRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    user = get_user_or_404(db, user_id)
    user.role = data.role.value
    db.commit()
    db.refresh(user)

    logger.info('Admin %s changed role of %s to %s', current_user.id, user.email, user.role)
    return {'message': 'User role updated successfully', 'user': user}


@router.delete('/{user_id}', response_model=MessageResponse)
def delete_user(user_id: int, db: Session = Depends(get_db), current_user: User = Depends(require_admin)):
    user = get_user_or_404(db, user_id)
    email = user.email
    admin_id = current_user.id

    try:
        owned_assignments = select(Assignment.id).where(Assignment.created_by == user.id)
        db.query(Submission).filter(
            (Submission.student_id == user.id) | Submission.assignment_id.in_(owned_assignments)
        ).delete(synchronize_session=False)
        db.query(Assignment).filter(Assignment.created_by == user.id).delete(synchronize_session=False)
        db.delete(user)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info('Admin %s deleted user %s', admin_id, email)
    return {'message': 'User deleted successfully'}
