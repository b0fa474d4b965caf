"""
WSGI / Flask-Migrate entry point.

Usage:
    flask --app wsgi db upgrade
    flask --app wsgi seed-master-data
    gunicorn wsgi:app
"""

from sbclc import create_app

app = create_app()
