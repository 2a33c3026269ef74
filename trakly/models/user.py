from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, func
from trakly.database import Base

YEARS = ("1st", "2nd", "3rd", "4th")
BRANCHES = ("IT", "CSE", "CSE AIML", "CSD", "EEE", "ECE", "ME")

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)  # stored lowercased
    hashed_password = Column(String, nullable=True)  # NULL for Google-only accounts
    google_id = Column(String, unique=True, nullable=True)
    college = Column(String, nullable=True)
    year = Column(String, nullable=True)    # 1st, 2nd, 3rd, 4th
    branch = Column(String, nullable=True)  # IT, CSE, CSE AIML, CSD, EEE, ECE, ME
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

class UserSubject(Base):
    __tablename__ = "user_subjects"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    subject_code = Column(String, nullable=False)
    subject_name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (UniqueConstraint("user_id", "subject_code", name="uq_user_subject_code"),)
