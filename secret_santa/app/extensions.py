"""
extensions.py — Flask extension singletons.

Initialises SQLAlchemy as a module-level object so it can be imported anywhere
without creating circular dependencies.

Pattern:
    1. Create the extension object here (no app attached yet).
    2. Call init_app(app) inside the app factory in app/__init__.py.
    3. Import `db` from here wherever needed.

    from secret_santa.app.extensions import db

Only the "sql" record store backend touches the database; the app factory
skips init_app() for the "json" and "memory" backends.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
