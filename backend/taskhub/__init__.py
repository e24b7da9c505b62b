from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from typing import Optional, Dict, Any
import logging
import os

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()

log = logging.getLogger(__name__)


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


def _make_engine(url: str):
    if url.endswith(':memory:'):
        # one shared connection, otherwise every session sees its own empty database
        return create_engine(url, future=True, connect_args={'check_same_thread': False}, poolclass=StaticPool)
    return create_engine(url, future=True)


def _error_payload(status: int, title: str, detail: str) -> Dict[str, Any]:
    return {'error': {'status': status, 'title': title, 'detail': detail}}


def _register_error_handlers(app: Flask):
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, HTTPException):
            payload = _error_payload(e.code, e.name, e.description)
            # taskhub.errors carry a stable code plus the record they refer to
            code = getattr(e, 'error_code', None)
            if code:
                payload['error']['code'] = code
                payload['error']['context'] = e.context()
            return payload, e.code
        app.logger.exception('Unhandled exception')
        return _error_payload(500, 'Internal Server Error', 'Unexpected error'), 500


def create_app(config: Optional[Dict[str, Any]] = None):
    """Application factory; `config` overrides environment-derived settings."""
    global db_engine, SessionLocal
    app = Flask(__name__)
    app.config.update(
        JWT_SECRET_KEY=os.getenv('JWT_SECRET_KEY', 'dev-secret'),
        DATABASE_URL=os.getenv('DATABASE_URL', 'sqlite:///dev.db'),
        LOG_LEVEL=os.getenv('LOG_LEVEL', 'INFO'),
        # Unconfigured dashboard paths are visible unless this is switched off
        ROUTE_ACCESS_DEFAULT_ALLOW=_env_flag('ROUTE_ACCESS_DEFAULT_ALLOW', True),
    )
    if config:
        app.config.update(config)

    logging.getLogger('taskhub').setLevel(app.config['LOG_LEVEL'])

    db_engine = _make_engine(app.config['DATABASE_URL'])
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)

    @app.teardown_appcontext
    def remove_session(exc=None):
        # close() rolls back whatever a failed request left pending on this thread's session
        SessionLocal.remove()

    from .routes.auth import auth_bp
    from .routes.access import access_bp
    from .routes.projects import projects_bp
    from .routes.tasks import tasks_bp
    from .routes.stages import stages_bp
    from .routes.documents import documents_bp
    from .routes.users import users_bp
    from .routes.settings import settings_bp
    from .routes.activity import activity_bp
    from .routes.notifications import notifications_bp
    from .routes.reports import rpt_bp
    from .routes.profile import profile_bp
    for bp, prefix in (
        (auth_bp, '/auth'),
        (access_bp, '/access'),
        (projects_bp, '/projects'),
        (tasks_bp, '/tasks'),
        (stages_bp, '/stages'),
        (documents_bp, '/documents'),
        (users_bp, '/users'),
        (settings_bp, '/settings'),
        (activity_bp, '/activity-logs'),
        (notifications_bp, '/notifications'),
        (rpt_bp, '/reports'),
        (profile_bp, '/profile'),
    ):
        app.register_blueprint(bp, url_prefix=prefix)

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    _register_error_handlers(app)
    log.debug('taskhub app created (db=%s)', db_engine.url.drivername)
    return app


def get_db():
    return SessionLocal()
