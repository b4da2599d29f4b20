import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from agenda import notifications
from agenda.core import config
from agenda.database import Base, engine, ensure_booking_token_schema, ensure_session_schema
from agenda.models import availability, booking_token, schedule_lock, session, user  # noqa: F401
from agenda.routes import availability_routes, booking_routes, session_routes

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)
logger = logging.getLogger(__name__)

app = FastAPI(title='Practice Agenda API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    notifications.register_listener(notifications.log_session_event)
    try:
        Base.metadata.create_all(bind=engine)
        ensure_session_schema()
        ensure_booking_token_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and database credentials.')


@app.get('/')
def root():
    return {'status': 'Practice Agenda API Running'}


app.include_router(availability_routes.router, prefix='/availability')
app.include_router(booking_routes.router, prefix='/booking')
app.include_router(session_routes.router, prefix='/sessions')
