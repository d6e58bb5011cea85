"""
User and project models - membership data read by the access resolver
"""
from sqlalchemy import Column, Integer, String, TIMESTAMP, ForeignKey, text
from app.database import Base


class Project(Base):
    """
    Projects table - groups users for bulk exam and training assignment
    """
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), server_default=text("CURRENT_TIMESTAMP"))

    def __repr__(self):
        return f"<Project(id={self.id}, name={self.name})>"


class User(Base):
    """
    Users table - project_id is the primary project, user_projects holds the rest
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False, default="")
    surname = Column(String(100), nullable=False, default="")
    email = Column(String(255), nullable=False, unique=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=text("CURRENT_TIMESTAMP"))

    @property
    def display_name(self) -> str:
        return f"{self.name} {self.surname} ({self.email})"

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email})>"


class UserProject(Base):
    """
    Secondary project memberships (many-to-many)
    """
    __tablename__ = "user_projects"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), primary_key=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=text("CURRENT_TIMESTAMP"))

    def __repr__(self):
        return f"<UserProject(user_id={self.user_id}, project_id={self.project_id})>"
