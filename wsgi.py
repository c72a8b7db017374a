"""
WSGI entry point (also used by the Flask-Migrate CLI).

Usage:
    flask --app wsgi db init       # first time only (creates migrations/)
    flask --app wsgi db migrate -m "description"
    flask --app wsgi db upgrade
"""

from app import create_app

app = create_app()
