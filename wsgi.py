"""
WSGI entry point and Flask CLI target.

Usage:
    flask --app wsgi run
    flask --app wsgi create-users
    flask --app wsgi init-chat-rooms
    flask --app wsgi migrate-survey-types
"""

from app import create_app

app = create_app()
