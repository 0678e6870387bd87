"""Process-wide clients for external collaborators.

The storage and mail clients are created once when the application starts,
kept on ``app.state`` and handed to routes through the dependencies below so
tests can replace them with ``app.dependency_overrides``.
"""

import logging

from fastapi import FastAPI, Request

from assignment_portal.core import config
from assignment_portal.core.uploads import FilenamePolicy
from assignment_portal.services.mailer import SmtpMailer, build_mailer
from assignment_portal.services.storage import SubmissionStorage, build_storage

logger = logging.getLogger(__name__)


def open_clients(app: FastAPI) -> None:
    app.state.storage = build_storage()
    app.state.mailer = build_mailer()


def close_clients(app: FastAPI) -> None:
    storage = getattr(app.state, 'storage', None)
    if storage is not None:
        storage.close()
        app.state.storage = None
    logger.info('External clients closed')


def get_storage(request: Request) -> SubmissionStorage:
    return request.app.state.storage


def get_mailer(request: Request) -> SmtpMailer:
    return request.app.state.mailer


def get_filename_policy() -> FilenamePolicy:
    return FilenamePolicy(config.SUBMISSION_FILENAME_POLICY)
