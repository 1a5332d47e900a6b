# buildapp/models/project.py
import uuid
from sqlalchemy import Column, String, Text

from buildapp.db.base_class import Base
from buildapp.models.mixins import TimestampMixin


class Project(Base, TimestampMixin):
    __tablename__ = "projects"

    id = Column(
        String, primary_key=True, default=lambda: f"prj_{uuid.uuid4().hex[:12]}"
    )
    owner_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    site_address = Column(Text, nullable=True)
