from .db import close_db, get_db, init_db, migrate
from .query import SQLALCHEMY_ENGINE, SelectQuery
from .strategy import SQLAlchemyStrategy, register_sqlalchemy

__all__ = [
    "SQLALCHEMY_ENGINE",
    "SQLAlchemyStrategy",
    "SelectQuery",
    "close_db",
    "get_db",
    "init_db",
    "migrate",
    "register_sqlalchemy",
]
