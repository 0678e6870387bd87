from datetime import datetime

from fastapi import APIRouter, Depends, File, UploadFile, status
from pydantic import BaseModel
from sqlalchemy.orm import Session, aliased

from assignment_portal.auth.permissions import Permission, require_permission
from assignment_portal.core import config
from assignment_portal.core.uploads import FilenamePolicy, UploadedFile
from assignment_portal.database import get_db
from assignment_portal.models.assignment import Assignment
from assignment_portal.models.submission import Submission
from assignment_portal.models.user import User
from assignment_portal.services.mailer import SmtpMailer
from assignment_portal.services.storage import SubmissionStorage
from assignment_portal.services.submissions import submit_assignment
from assignment_portal.services.wiring import get_filename_policy, get_mailer, get_storage

router = APIRouter(tags=['submissions'])


class SubmissionReceipt(BaseModel):
    id: int
    filename: str
    uploaded_at: datetime
    share_link: str | None = None
    direct_link: str | None = None
    notification_status: str

    class Config:
        from_attributes = True


class SubmitResponse(BaseModel):
    message: str
    submission: SubmissionReceipt


class StudentSummary(BaseModel):
    id: int
    name: str
    email: str


class AssignmentSummary(BaseModel):
    id: int
    title: str


class SubmissionResponse(BaseModel):
    id: int
    filename: str
    uploaded_at: datetime
    share_link: str | None = None
    direct_link: str | None = None
    email_message_id: str | None = None
    notification_status: str
    student: StudentSummary | None = None
    assignment: AssignmentSummary | None = None


def to_uploaded_file(upload: UploadFile | None, max_bytes: int) -> UploadedFile | None:
    """Read at most one byte past ``max_bytes``; admission rejects the overflow."""
    if upload is None:
        return None
    return UploadedFile(
        filename=upload.filename or '',
        content_type=upload.content_type or '',
        content=upload.file.read(max_bytes + 1),
    )


def list_submission_rows(db: Session, assignment_id: int | None = None) -> list[SubmissionResponse]:
    student = aliased(User)
    query = (
        db.query(Submission, student, Assignment)
        .outerjoin(student, student.id == Submission.student_id)
        .outerjoin(Assignment, Assignment.id == Submission.assignment_id)
    )
    if assignment_id is not None:
        query = query.filter(Submission.assignment_id == assignment_id)

    rows = query.order_by(Submission.uploaded_at.desc(), Submission.id.desc()).all()
    return [
        SubmissionResponse(
            id=submission.id,
            filename=submission.filename,
            uploaded_at=submission.uploaded_at,
            share_link=submission.share_link,
            direct_link=submission.direct_link,
            email_message_id=submission.email_message_id,
            notification_status=submission.notification_status,
            student=StudentSummary(id=owner.id, name=owner.name, email=owner.email) if owner else None,
            assignment=AssignmentSummary(id=parent.id, title=parent.title) if parent else None,
        )
        for submission, owner, parent in rows
    ]


@router.post(
    '/assignments/{assignment_id}/submit',
    response_model=SubmitResponse,
    status_code=status.HTTP_201_CREATED,
)
def submit(
    assignment_id: int,
    file: UploadFile | None = File(default=None),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.SUBMIT_ASSIGNMENT)),
    storage: SubmissionStorage = Depends(get_storage),
    mailer: SmtpMailer = Depends(get_mailer),
    policy: FilenamePolicy = Depends(get_filename_policy),
):
    submission = submit_assignment(
        db,
        assignment_id=assignment_id,
        student=current_user,
        upload=to_uploaded_file(file, config.MAX_UPLOAD_BYTES),
        storage=storage,
        mailer=mailer,
        policy=policy,
        max_upload_bytes=config.MAX_UPLOAD_BYTES,
    )
    return {
        'message': 'Assignment submitted successfully',
        'submission': submission,
    }


@router.get('/assignments/{assignment_id}/submissions', response_model=list[SubmissionResponse])
def list_assignment_submissions(
    assignment_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.LIST_SUBMISSIONS)),
):
    return list_submission_rows(db, assignment_id)


@router.get('/submissions', response_model=list[SubmissionResponse])
def list_all_submissions(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_permission(Permission.LIST_SUBMISSIONS)),
):
    return list_submission_rows(db)
