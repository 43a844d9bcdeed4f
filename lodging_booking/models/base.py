from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    The booking core talks to these tables through SQLAlchemy Core statements;
    the declarative classes exist to define the schema in one place for both
    Alembic and `Base.metadata.create_all`.
    """

    pass
