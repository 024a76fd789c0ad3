"""
Pharmacoeconomic Request Workflow
SQLAlchemy extension instance shared by all models.

Model modules are imported for side effects inside create_app() so that
db.create_all() and Alembic see every table.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
