import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from assignment_portal.auth import jwt_handler
from assignment_portal.auth.dependencies import get_current_user
from assignment_portal.auth.passwords import hash_password, verify_password
from assignment_portal.database import get_db
from assignment_portal.models.user import Role, User

router = APIRouter(tags=['auth'])

logger = logging.getLogger(__name__)

SELF_SERVICE_ROLES = (Role.STUDENT, Role.MONITOR)


class RegisterRequest(BaseModel):
    name: str = Field(min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(min_length=6)
    role: Role = Role.STUDENT

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if len(normalized) < 2:
            raise ValueError('Name must be at least 2 characters.')
        if '\r' in normalized or '\n' in normalized:
            raise ValueError('Name must be a single line.')
        return normalized

    @field_validator('email', mode='before')
    @classmethod
    def normalize_email(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator('role')
    @classmethod
    def validate_role(cls, value: Role) -> Role:
        if value not in SELF_SERVICE_ROLES:
            raise ValueError('Role must be student or monitor.')
        return value


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)

    @field_validator('email', mode='before')
    @classmethod
    def normalize_email(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    role: str
    approved: bool
    created_at: datetime

    class Config:
        from_attributes = True


class RegisterResponse(BaseModel):
    message: str
    user: UserResponse


class LoginResponse(BaseModel):
    token: str
    user: UserResponse


class MeResponse(BaseModel):
    user: UserResponse


def find_user_by_email(db: Session, email: str) -> User | None:
    return db.query(User).filter(User.email == email.strip().lower()).first()


@router.post('/register', response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(data: RegisterRequest, db: Session = Depends(get_db)):
    if find_user_by_email(db, data.email) is not None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='User already exists')

    user = User(
        name=data.name,
        email=data.email,
        hashed_password=hash_password(data.password),
        role=data.role.value,
        approved=False,
    )
    try:
        db.add(user)
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='User already exists') from exc
    db.refresh(user)

    logger.info('Registered %s as %s, awaiting approval', user.email, user.role)
    return {
        'message': 'User registered successfully. Please wait for admin approval.',
        'user': user,
    }


@router.post('/login', response_model=LoginResponse)
def login(data: LoginRequest, db: Session = Depends(get_db)):
    user = find_user_by_email(db, data.email)
    if user is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Invalid credentials')

    if not user.approved:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Account pending admin approval')

    if not verify_password(data.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail='Invalid credentials')

    return {'token': jwt_handler.create_access_token(user.id), 'user': user}


@router.get('/me', response_model=MeResponse)
def me(current_user: User = Depends(get_current_user)):
    return {'user': current_user}
