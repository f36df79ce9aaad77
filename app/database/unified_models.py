"""
ModelCast database models
Profiles, the purchase ledger, signup bookkeeping and generation history
"""
from sqlalchemy import Column, String, Integer, Boolean, DateTime, JSON, CheckConstraint, Index
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
import uuid as uuid_lib

Base = declarative_base()

# JSONB on Postgres, plain JSON elsewhere
JSONType = JSON().with_variant(JSONB(), "postgresql")

# =============================================================================
# ACCOUNT TABLES
# =============================================================================

class Profile(Base):
    """One row per Supabase auth user; id mirrors auth.users.id"""
    __tablename__ = "profiles"
    __table_args__ = (
        CheckConstraint("credits >= 0", name="profiles_credits_non_negative"),
        CheckConstraint("NOT is_studio OR is_pro", name="profiles_studio_implies_pro"),
    )

    id = Column(String(64), primary_key=True)
    credits = Column(Integer, nullable=False, default=0)
    plan = Column(String(16), nullable=False, default="free")
    is_pro = Column(Boolean, nullable=False, default=False)
    is_studio = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())


class SignupEmail(Base):
    """Normalized emails that already received the free signup grant"""
    __tablename__ = "signup_emails"

    email = Column(String(320), primary_key=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


# =============================================================================
# BILLING TABLES
# =============================================================================

class CreditHistory(Base):
    """Purchase ledger, at most one row per provider event and per checkout session"""
    __tablename__ = "credit_history"

    event_id = Column(String(255), primary_key=True)
    session_id = Column(String(255), unique=True, nullable=True)
    user_id = Column(String(64), nullable=False, index=True)
    credits_added = Column(Integer, nullable=False)
    plan = Column(String(16), nullable=False)
    source = Column(String(16), nullable=False, default="webhook")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


# =============================================================================
# GENERATION TABLES
# =============================================================================

class Generation(Base):
    """Completed generations shown in the user's history"""
    __tablename__ = "generations"
    __table_args__ = (
        Index("idx_generations_user_created", "user_id", "created_at"),
    )

    id = Column(String(36), primary_key=True, default=lambda: str(uuid_lib.uuid4()))
    user_id = Column(String(64), nullable=False)
    image_url = Column(String, nullable=False)
    plan = Column(String(16), nullable=False)
    # "metadata" is reserved on declarative classes
    generation_metadata = Column("metadata", JSONType, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class EarlyAccessSignup(Base):
    __tablename__ = "early_access"

    email = Column(String(320), primary_key=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
