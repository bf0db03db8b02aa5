from sqlalchemy.orm import DeclarativeBase
from rydercomps.db.metadata import metadata_obj


class Base(DeclarativeBase):
    metadata = metadata_obj
