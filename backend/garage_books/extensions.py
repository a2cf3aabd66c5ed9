# Overview: Shared extension instances; bound to the app in create_app().

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

# Every posting service reaches the session through this handle.
db = SQLAlchemy()
migrate = Migrate()
