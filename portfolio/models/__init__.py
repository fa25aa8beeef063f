"""
Portfolio Scenario Planner
SQLAlchemy extension instance shared by every model module.

Usage:
    from portfolio.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
