import logging

from fastapi import APIRouter, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from slowapi.util import get_remote_address
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from assignment_portal.core import config
from assignment_portal.core.deadlines import utcnow
from assignment_portal.create_admin import ensure_admin
from assignment_portal.database import SessionLocal, close_db, init_db
from assignment_portal.routes import assignment_routes, auth_routes, submission_routes, user_routes
from assignment_portal.services.wiring import close_clients, open_clients

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)
logger = logging.getLogger(__name__)

config.validate_runtime_config()

app = FastAPI(title='Assignment Portal API')

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[config.RATE_LIMIT],
    enabled=config.RATE_LIMIT_ENABLED,
)
app.state.limiter = limiter

app.add_middleware(SlowAPIMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials='*' not in config.CORS_ORIGINS,
    allow_methods=['GET', 'POST', 'PUT', 'PATCH', 'DELETE'],
    allow_headers=['*'],
)


def validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return 'Invalid request'

    first = errors[0]
    message = str(first.get('msg', 'Invalid request'))
    if first.get('type') == 'value_error':
        return message.removeprefix('Value error, ')

    field = next((str(part) for part in reversed(first.get('loc', ())) if isinstance(part, str)), None)
    if field and field not in {'body', 'query', 'path'}:
        return f'{field}: {message}'
    return message


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={'message': exc.detail},
        headers=getattr(exc, 'headers', None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={'message': validation_message(exc)},
    )


@app.exception_handler(RateLimitExceeded)
def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={'message': 'Too many requests from this IP, please try again later.'},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception('Unhandled error on %s %s', request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={'message': 'Server error'},
    )


@app.on_event('startup')
def startup() -> None:
    try:
        init_db()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL.')
        raise

    if config.ADMIN_EMAIL and config.ADMIN_PASSWORD:
        db = SessionLocal()
        try:
            ensure_admin(db, config.ADMIN_EMAIL, config.ADMIN_NAME, config.ADMIN_PASSWORD)
        finally:
            db.close()

    open_clients(app)


@app.on_event('shutdown')
def shutdown() -> None:
    close_clients(app)
    close_db()


api = APIRouter(prefix='/api')


@api.get('')
def health():
    return {'message': 'Server is running', 'timestamp': utcnow().isoformat() + 'Z'}


api.include_router(auth_routes.router, prefix='/auth')
api.include_router(user_routes.router, prefix='/users')
api.include_router(assignment_routes.router, prefix='/assignments')
api.include_router(submission_routes.router)

app.include_router(api)
