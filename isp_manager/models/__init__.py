"""
ISP Project Manager
SQLAlchemy extension instance shared by all models.

Usage:
    from isp_manager.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
