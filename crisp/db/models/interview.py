"""
Interview definition model.

An interview is what a candidate is invited to via an access code. Authoring
happens elsewhere; this service only reads definitions.
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON
from sqlalchemy.sql import func
from crisp.db.base import Base


class Interview(Base):
    __tablename__ = "interviews"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    roles = Column(JSON, nullable=False, default=list)  # e.g. ["Full Stack Developer (React/Node.js)"]
    access_code = Column(String(16), unique=True, nullable=False, index=True)  # CRISP-XXXX-XXXX
    status = Column(String, nullable=False, default="active")  # active / archived
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    def __repr__(self):
        return f"<Interview(id={self.id}, title='{self.title}', access_code='{self.access_code}')>"
