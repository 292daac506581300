"""Flask extension handles shared by the app factory and the relational Advent store."""

from flask_sqlalchemy import SQLAlchemy

# bound in create_app(); advent.models and SqlStore import it from here
db = SQLAlchemy()
