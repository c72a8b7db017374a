"""
ClientForge
Database models package.

All models share a single SQLAlchemy instance (``db``) which is bound to
the Flask app inside ``create_app()``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
