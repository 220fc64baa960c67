from sqlalchemy import Column, Integer, String, DateTime, Enum, ForeignKey

from app.db.session import Base
from app.schemas.camp import CamperStatusEnum


class Camp(Base):
    __tablename__ = "camps"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)


class Location(Base):
    __tablename__ = "locations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)


class Group(Base):
    __tablename__ = "camper_groups"

    id = Column(Integer, primary_key=True, index=True)
    camp_id = Column(Integer, ForeignKey("camps.id"), nullable=False, index=True)
    name = Column(String, nullable=False)
    supervisor_id = Column(Integer, ForeignKey("users.id"), nullable=True)


class Camper(Base):
    __tablename__ = "campers"

    id = Column(Integer, primary_key=True, index=True)
    camper_name = Column(String, nullable=False)
    camp_id = Column(Integer, ForeignKey("camps.id"), nullable=False, index=True)
    group_id = Column(Integer, ForeignKey("camper_groups.id"), nullable=True, index=True)
    status = Column(Enum(CamperStatusEnum), nullable=False, default=CamperStatusEnum.registered)
