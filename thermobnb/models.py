import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_id():
    return str(uuid.uuid4())


class User(Base):
    """Owner (property manager) or operator, keyed by the identity provider subject"""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id)
    email = Column(String(255), unique=True, index=True, nullable=True)
    role = Column(String(20), nullable=False, default="owner")  # owner, admin
    created_at = Column(DateTime, server_default=func.now())

    rooms = relationship("UserRoom", back_populates="user", cascade="all, delete-orphan")


class UserRoom(Base):
    """Rentable room as known by the booking engine"""

    __tablename__ = "user_rooms"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    room_id = Column(String(64), nullable=False)  # Booking engine room id
    room_name = Column(String(255), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="rooms")
