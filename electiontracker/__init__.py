# electiontracker/__init__.py

import logging
import os
import sqlite3

from flask import Flask, jsonify, request
from sqlalchemy import event
from sqlalchemy.engine import Engine
from werkzeug.middleware.proxy_fix import ProxyFix

from electiontracker.audit.audit_logger import AuditLogger, load_signing_key
from electiontracker.config import Config
from electiontracker.errors import TallyError
from electiontracker.extensions import db, jwt, limiter, migrate


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores foreign keys unless asked; PostgreSQL always enforces them
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_app(config=None, **overrides):
    app = Flask(__name__)
    app.config.from_object(config or Config)
    app.config.update(overrides)

    logging.basicConfig(
        level=app.config.get('LOG_LEVEL', 'INFO'),
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    # Fix proxy headers for HTTPS
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_port=1)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db, directory=os.path.join(os.path.dirname(__file__), 'database', 'migrations'))
    jwt.init_app(app)
    limiter.init_app(app)

    audit_dir = app.config['AUDIT_LOG_DIR']
    key_file = app.config.get('AUDIT_SIGNING_KEY_FILE') or os.path.join(audit_dir, 'audit_signing_key.pem')
    app.extensions['audit_logger'] = AuditLogger(log_dir=audit_dir, signing_key=load_signing_key(key_file))

    # Ensure model modules are imported so SQLAlchemy metadata is populated
    # for `flask db migrate` and `init-db`.
    from electiontracker.database import models  # noqa: F401

    from electiontracker.routes import api
    app.register_blueprint(api)

    from electiontracker.commands import register_commands
    register_commands(app)

    @app.errorhandler(TallyError)
    def handle_tally_error(error):
        return jsonify(error.to_dict()), error.status_code

    return app


@jwt.expired_token_loader
def expired_token_callback(jwt_header, jwt_payload):
    return jsonify({"error": "Token has expired"}), 401


@jwt.unauthorized_loader
def missing_token_callback(reason):
    return jsonify({"error": f"Authentication required: {reason}", "path": request.path}), 401
