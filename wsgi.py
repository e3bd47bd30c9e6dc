"""
WSGI / Flask-Migrate entry point.

Usage:
    FLASK_APP=wsgi.py flask db upgrade
    FLASK_APP=wsgi.py flask create-user admin@example.com --admin
    gunicorn wsgi:app
"""

from tierbook import create_app

app = create_app()
