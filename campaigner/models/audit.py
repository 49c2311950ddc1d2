# campaigner/models/audit.py
from sqlalchemy import Column, String, JSON
from campaigner.models.base import BaseModel


class AuditLog(BaseModel):
    __tablename__ = "audit_logs"

    action = Column(String(100), index=True, nullable=False)
    entity_type = Column(String(100), nullable=True)
    entity_id = Column(String(100), index=True, nullable=True)
    user_id = Column(String(100), nullable=True)
    details = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<AuditLog {self.action} {self.entity_id}>"
