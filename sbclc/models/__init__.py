"""
SBCLC Logistics Back-Office
Model package — shared SQLAlchemy handle.

Every model module imports ``db`` from here so that the app factory can bind
one instance with ``db.init_app(app)``.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
