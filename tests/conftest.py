import os
from datetime import timedelta

os.environ.setdefault('DATABASE_URL', 'sqlite://')
os.environ.setdefault('RATE_LIMIT_ENABLED', 'false')
os.environ.setdefault('JWT_SECRET_KEY', 'test-secret')

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from assignment_portal.auth import jwt_handler  # noqa: E402
from assignment_portal.auth.passwords import hash_password  # noqa: E402
from assignment_portal.core.deadlines import utcnow  # noqa: E402
from assignment_portal.core.uploads import FilenamePolicy  # noqa: E402
from assignment_portal.database import Base, get_db  # noqa: E402
from assignment_portal.main import app  # noqa: E402
from assignment_portal.models.assignment import Assignment  # noqa: E402
from assignment_portal.models.submission import Submission  # noqa: E402
from assignment_portal.models.user import Role, User  # noqa: E402
from assignment_portal.services.mailer import NotificationResult  # noqa: E402
from assignment_portal.services.storage import StorageError, StoredFile  # noqa: E402
from assignment_portal.services.wiring import get_filename_policy, get_mailer, get_storage  # noqa: E402

DEFAULT_PASSWORD = 'secret123'
PASSWORD_HASH = hash_password(DEFAULT_PASSWORD)


class FakeStorage:
    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}
        self.deleted: list[str] = []
        self.fail_upload = False

    def upload(self, key: str, content: bytes, content_type: str) -> StoredFile:
        if self.fail_upload:
            raise StorageError('bucket unreachable')
        self.objects[key] = content
        return StoredFile(
            key=key,
            share_link=f'https://files.example.com/{key}?download=1',
            direct_link=f'https://files.example.com/{key}',
        )

    def delete(self, key: str) -> None:
        self.objects.pop(key, None)
        self.deleted.append(key)

    def close(self) -> None:
        return None


class FakeMailer:
    def __init__(self) -> None:
        self.sent: list[dict] = []
        self.result = NotificationResult.sent('<msg-1@example.com>')

    def send_submission(self, student_name, assignment_title, filename, content) -> NotificationResult:
        self.sent.append(
            {
                'student_name': student_name,
                'assignment_title': assignment_title,
                'filename': filename,
                'content': content,
            }
        )
        return self.result


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(
        bind=engine,
        tables=[User.__table__, Assignment.__table__, Submission.__table__],
    )
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def mailer() -> FakeMailer:
    return FakeMailer()


@pytest.fixture
def client(session_factory, storage, mailer):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_filename_policy] = lambda: FilenamePolicy.CJK_ONLY
    try:
        yield TestClient(app, raise_server_exceptions=False)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_user(db):
    counter = {'n': 0}

    def _make_user(
        role: Role = Role.STUDENT,
        *,
        approved: bool = True,
        email: str | None = None,
        name: str | None = None,
    ) -> User:
        counter['n'] += 1
        user = User(
            name=name or f'{role.value.title()} {counter["n"]}',
            email=email or f'{role.value}{counter["n"]}@example.com',
            hashed_password=PASSWORD_HASH,
            role=role.value,
            approved=approved,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_assignment(db):
    def _make_assignment(creator: User, *, deadline=None, title: str = 'Essay on rivers') -> Assignment:
        assignment = Assignment(
            title=title,
            description='Write two pages about a river you know.',
            deadline=deadline or utcnow() + timedelta(hours=1),
            created_by=creator.id,
        )
        db.add(assignment)
        db.commit()
        db.refresh(assignment)
        return assignment

    return _make_assignment


def auth_headers(user: User) -> dict[str, str]:
    return {'Authorization': f'Bearer {jwt_handler.create_access_token(user.id)}'}


@pytest.fixture
def headers_for():
    return auth_headers
