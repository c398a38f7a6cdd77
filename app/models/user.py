from sqlalchemy import Column, Integer, String, Boolean, DateTime, func
from app.database import Base

ROLE_ADMIN = "admin"
ROLE_SUPERVISOR = "supervisor"
ROLE_USER = "user"
ROLES = (ROLE_ADMIN, ROLE_SUPERVISOR, ROLE_USER)

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=True)
    hashed_password = Column(String, nullable=False)
    is_active = Column(Boolean, default=True)
    role = Column(String, nullable=True, default=ROLE_USER)  # admin, supervisor, user
    position = Column(String, nullable=True)
    department = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
