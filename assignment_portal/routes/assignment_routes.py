import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from assignment_portal.auth.dependencies import get_current_user
from assignment_portal.auth.permissions import Permission, can_manage_assignment, require_permission, role_of
from assignment_portal.core.deadlines import to_naive_utc, utcnow
from assignment_portal.database import get_db
from assignment_portal.models.assignment import Assignment
from assignment_portal.models.submission import Submission
from assignment_portal.models.user import Role, User

router = APIRouter(tags=['assignments'])

logger = logging.getLogger(__name__)

UPCOMING_DEADLINES_LIMIT = 5


class AssignmentRequest(BaseModel):
    title: str = Field(min_length=3, max_length=100)
    description: str = Field(min_length=10)
    deadline: datetime

    @field_validator('title', 'description')
    @classmethod
    def strip_text(cls, value: str) -> str:
        return value.strip()

    @field_validator('title')
    @classmethod
    def validate_title(cls, value: str) -> str:
        if '\r' in value or '\n' in value:
            raise ValueError('Title must be a single line.')
        return value

    @field_validator('deadline')
    @classmethod
    def normalize_deadline(cls, value: datetime) -> datetime:
        return to_naive_utc(value)


class CreatorResponse(BaseModel):
    id: int
    name: str
    email: str

    class Config:
        from_attributes = True


class AssignmentResponse(BaseModel):
    id: int
    title: str
    description: str
    deadline: datetime
    created_at: datetime
    created_by: CreatorResponse | None = None
    has_submitted: bool | None = None
    submission_date: datetime | None = None


class MessageResponse(BaseModel):
    message: str


class StudentStatsResponse(BaseModel):
    assignments_available: int
    submitted: int
    pending: int
    next_deadline: datetime | None = None


class MonitorStatsResponse(BaseModel):
    assignments_created: int
    total_submissions: int
    upcoming_deadlines: int


def to_assignment_response(assignment: Assignment, creator: User | None) -> AssignmentResponse:
    return AssignmentResponse(
        id=assignment.id,
        title=assignment.title,
        description=assignment.description,
        deadline=assignment.deadline,
        created_at=assignment.created_at,
        created_by=CreatorResponse.model_validate(creator) if creator is not None else None,
    )


def get_assignment_or_404(db: Session, assignment_id: int) -> Assignment:
    assignment = db.get(Assignment, assignment_id)
    if assignment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Assignment not found')
    return assignment


def ensure_can_manage(user: User, assignment: Assignment, action: str) -> None:
    if not can_manage_assignment(user, assignment):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f'Not authorized to {action} this assignment',
        )


@router.post('', response_model=AssignmentResponse, status_code=status.HTTP_201_CREATED)
def create_assignment(
    data: AssignmentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.CREATE_ASSIGNMENT)),
):
    if data.deadline <= utcnow():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Deadline must be in the future')

    assignment = Assignment(
        title=data.title,
        description=data.description,
        deadline=data.deadline,
        created_by=current_user.id,
    )
    db.add(assignment)
    db.commit()
    db.refresh(assignment)

    logger.info('User %s created assignment %s', current_user.id, assignment.id)
    return to_assignment_response(assignment, current_user)


@router.get('', response_model=list[AssignmentResponse])
def list_assignments(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    rows = (
        db.query(Assignment, User)
        .outerjoin(User, User.id == Assignment.created_by)
        .order_by(Assignment.created_at.desc(), Assignment.id.desc())
        .all()
    )
    assignments = [to_assignment_response(assignment, creator) for assignment, creator in rows]

    if role_of(current_user) is not Role.STUDENT:
        return assignments

    submitted_at = dict(
        db.query(Submission.assignment_id, Submission.uploaded_at)
        .filter(Submission.student_id == current_user.id)
        .all()
    )
    for item in assignments:
        item.has_submitted = item.id in submitted_at
        item.submission_date = submitted_at.get(item.id)
    return assignments


@router.get('/student/stats/overview', response_model=StudentStatsResponse)
def student_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.VIEW_STUDENT_STATS)),
):
    total_assignments = db.query(Assignment).count()
    submitted = db.query(Submission).filter(Submission.student_id == current_user.id).count()
    next_assignment = (
        db.query(Assignment)
        .filter(Assignment.deadline > utcnow())
        .order_by(Assignment.deadline.asc())
        .first()
    )
    return StudentStatsResponse(
        assignments_available=total_assignments,
        submitted=submitted,
        pending=max(total_assignments - submitted, 0),
        next_deadline=next_assignment.deadline if next_assignment else None,
    )


@router.get('/monitor/stats/overview', response_model=MonitorStatsResponse)
def monitor_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.VIEW_MONITOR_STATS)),
):
    upcoming = (
        db.query(Assignment.id)
        .filter(Assignment.deadline > utcnow())
        .order_by(Assignment.deadline.asc())
        .limit(UPCOMING_DEADLINES_LIMIT)
        .all()
    )
    return MonitorStatsResponse(
        assignments_created=db.query(Assignment).filter(Assignment.created_by == current_user.id).count(),
        total_submissions=db.query(Submission).count(),
        upcoming_deadlines=len(upcoming),
    )


@router.get('/{assignment_id}', response_model=AssignmentResponse)
def get_assignment(
    assignment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    assignment = get_assignment_or_404(db, assignment_id)
    return to_assignment_response(assignment, db.get(User, assignment.created_by))


@router.put('/{assignment_id}', response_model=AssignmentResponse)
def update_assignment(
    assignment_id: int,
    data: AssignmentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.UPDATE_ASSIGNMENT)),
):
    assignment = get_assignment_or_404(db, assignment_id)
    ensure_can_manage(current_user, assignment, 'update')

    assignment.title = data.title
    assignment.description = data.description
    assignment.deadline = data.deadline
    db.commit()
    db.refresh(assignment)

    logger.info('User %s updated assignment %s', current_user.id, assignment.id)
    return to_assignment_response(assignment, db.get(User, assignment.created_by))


@router.delete('/{assignment_id}', response_model=MessageResponse)
def delete_assignment(
    assignment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.DELETE_ASSIGNMENT)),
):
    assignment = get_assignment_or_404(db, assignment_id)
    ensure_can_manage(current_user, assignment, 'delete')

    try:
        removed = (
            db.query(Submission)
            .filter(Submission.assignment_id == assignment.id)
            .delete(synchronize_session=False)
        )
        db.delete(assignment)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info('User %s deleted assignment %s with %d submissions', current_user.id, assignment_id, removed)
    return {'message': 'Assignment deleted successfully'}
