from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON
from sqlalchemy.sql import func
from app.db.session import Base


class SystemLog(Base):
    __tablename__ = "system_logs"

    id = Column(Integer, primary_key=True, index=True)

    # Who performed the action; null for service-to-service calls
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    user_name = Column(String, nullable=False)

    action = Column(String, nullable=False)  # e.g. "CREATE", "UPDATE", "CHECK_ATTENDANCE"
    description = Column(Text, nullable=False)
    table_name = Column(String, nullable=True)
    record_id = Column(Integer, nullable=True)

    details = Column(JSON, nullable=True)
    ip_address = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
