import asyncio
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from dentalsync.core import config
from dentalsync.database import ensure_local_store_schema
from dentalsync.routes import appointment_routes, feedback_routes
from dentalsync.sync.appointment_sync import AppointmentSync
from dentalsync.sync.backends import select_backend
from dentalsync.sync.client_factory import create_remote_client
from dentalsync.sync.feedback_store import FeedbackStore
from dentalsync.sync.local_store import LocalStore
from dentalsync.sync.notifications import LoggingNotifier
from dentalsync.sync.realtime import LiveUpdateListener
from dentalsync.sync.tracker import AppointmentTracker

logging.basicConfig(level=config.LOG_LEVEL)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

logger = logging.getLogger(__name__)


@app.on_event('startup')
async def initialize_sync() -> None:
    config.validate_runtime_config()

    try:
        ensure_local_store_schema()
    except SQLAlchemyError:
        logger.exception('Local store initialization failed. Check LOCAL_DATABASE_URL.')

    client = await create_remote_client(config.resolve_connection())
    notifier = LoggingNotifier()
    tracker = AppointmentTracker(LocalStore())
    appointment_sync = AppointmentSync(tracker, select_backend(client), notifier)
    await appointment_sync.load()

    app.state.remote_client = client
    app.state.appointment_sync = appointment_sync
    app.state.feedback_store = FeedbackStore(client)
    app.state.live_listener = None
    app.state.live_listener_task = None

    if client is not None and config.REALTIME_ENABLED:
        listener = LiveUpdateListener(tracker, notifier)
        try:
            await listener.subscribe(client)
        except Exception:
            logger.exception('Realtime subscription failed; live updates disabled.')
        else:
            app.state.live_listener = listener
            app.state.live_listener_task = asyncio.create_task(listener.run())

    logger.info('Supabase connected: %s', client is not None)


@app.on_event('shutdown')
async def shutdown_sync() -> None:
    task = getattr(app.state, 'live_listener_task', None)
    if task is not None:
        task.cancel()

    listener = getattr(app.state, 'live_listener', None)
    if listener is not None:
        await listener.stop()


@app.get('/')
def root():
    return {'status': 'Dental Sync API Running'}


app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(feedback_routes.router, prefix='/feedback')
