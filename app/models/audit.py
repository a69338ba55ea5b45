from sqlalchemy import Column, BigInteger, Integer, String, DateTime, JSON

from ..core.database import Base

class AuditLog(Base):
    __tablename__ = "audit_log"

    # Integer on SQLite so the primary key autoincrements
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True)
    actor = Column(String(100), nullable=True)
    action = Column(String(100), nullable=False)
    entity = Column(String(50), nullable=False, index=True)
    entity_id = Column(Integer, nullable=True, index=True)
    old_values = Column(JSON, nullable=True)
    new_values = Column(JSON, nullable=True)
    timestamp = Column(DateTime, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog(id={self.id}, action='{self.action}', entity='{self.entity}', entity_id={self.entity_id})>"
