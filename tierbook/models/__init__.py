"""Database handle shared by every model and service module."""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
