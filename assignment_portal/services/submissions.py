"""Submission admission pipeline.

Order is fixed and short-circuiting: file admission, assignment lookup,
deadline, duplicate check, storage upload, notification email, insert.
Every check runs before any side effect. Storage is authoritative (a failed
upload aborts the submission); email is advisory (its outcome is recorded).
"""

import logging
import uuid

from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from assignment_portal.core.deadlines import is_deadline_passed
from assignment_portal.core.uploads import FilenamePolicy, UploadedFile, admit_upload
from assignment_portal.models.assignment import Assignment
from assignment_portal.models.submission import Submission
from assignment_portal.models.user import User
from assignment_portal.services.mailer import NotificationResult, SmtpMailer
from assignment_portal.services.storage import StorageError, SubmissionStorage, build_object_key

logger = logging.getLogger(__name__)

ALREADY_SUBMITTED = 'Assignment already submitted'
ASSIGNMENT_NOT_FOUND = 'Assignment not found'


def find_submission(db: Session, assignment_id: int, student_id: int) -> Submission | None:
    return db.query(Submission).filter(
        Submission.assignment_id == assignment_id,
        Submission.student_id == student_id,
    ).first()


def get_open_assignment(db: Session, assignment_id: int) -> Assignment:
    assignment = db.get(Assignment, assignment_id)
    if assignment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=ASSIGNMENT_NOT_FOUND)

    if is_deadline_passed(assignment.deadline):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Submission deadline has passed')

    return assignment


def _notify(
    mailer: SmtpMailer,
    student_name: str,
    assignment_title: str,
    filename: str,
    content: bytes,
) -> NotificationResult:
    try:
        return mailer.send_submission(student_name, assignment_title, filename, content)
    except Exception as exc:
        logger.warning('Submission email for %s raised: %s', filename, exc, exc_info=True)
        return NotificationResult.failed(str(exc) or exc.__class__.__name__)


def _insert_conflict(db: Session, assignment_id: int, student_id: int) -> HTTPException | None:
    """Map a failed insert onto the client error it stands for, if any."""
    if find_submission(db, assignment_id, student_id) is not None:
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=ALREADY_SUBMITTED)
    if db.get(Assignment, assignment_id) is None:
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=ASSIGNMENT_NOT_FOUND)
    return None


def _discard_stored_file(storage: SubmissionStorage, key: str) -> None:
    try:
        storage.delete(key)
    except StorageError:
        logger.exception('Could not remove orphaned submission object %s', key)


def submit_assignment(
    db: Session,
    *,
    assignment_id: int,
    student: User,
    upload: UploadedFile | None,
    storage: SubmissionStorage,
    mailer: SmtpMailer,
    policy: FilenamePolicy,
    max_upload_bytes: int,
) -> Submission:
    admitted = admit_upload(upload, policy, max_upload_bytes)
    assignment = get_open_assignment(db, assignment_id)
    student_id = student.id

    if find_submission(db, assignment_id, student_id) is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=ALREADY_SUBMITTED)

    key = build_object_key(assignment_id, student_id, uuid.uuid4().hex, admitted.filename)
    stored = storage.upload(key, admitted.content, admitted.content_type)

    notification = _notify(
        mailer,
        student.name,
        assignment.title,
        admitted.filename,
        admitted.content,
    )

    submission = Submission(
        assignment_id=assignment_id,
        student_id=student_id,
        filename=admitted.filename,
        storage_key=stored.key,
        share_link=stored.share_link,
        direct_link=stored.direct_link,
        email_message_id=notification.message_id,
        notification_status=notification.status.value,
        notification_error=notification.error,
    )
    try:
        db.add(submission)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        _discard_stored_file(storage, stored.key)
        conflict = _insert_conflict(db, assignment_id, student_id)
        if conflict is None:
            raise
        raise conflict from exc
    except SQLAlchemyError:
        db.rollback()
        _discard_stored_file(storage, stored.key)
        raise

    db.refresh(submission)
    logger.info(
        'Student %s submitted %s for assignment %s (email %s)',
        student_id,
        submission.filename,
        assignment_id,
        submission.notification_status,
    )
    return submission
