"""
Flask extension singletons for the supplies tracker.

Kept in their own module so models, blueprints and services can import them
without importing the app factory. They are bound to an app in create_app().

- db:            Flask-SQLAlchemy (models + session used by the workflow engine)
- migrate:       Flask-Migrate (`flask db upgrade`)
- login_manager: Flask-Login (session -> identity claims)
- csrf:          Flask-WTF CSRF protection (X-CSRFToken header for JSON clients)
"""

from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf import CSRFProtect

db = SQLAlchemy()
migrate = Migrate()
login_manager = LoginManager()
csrf = CSRFProtect()
