"""SQLAlchemy models for tallybook database."""

from datetime import datetime, UTC
from sqlalchemy import (
    JSON,
    Column,
    Integer,
    String,
    Text,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    Float,
    UniqueConstraint,
    CheckConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session


def _utcnow() -> datetime:
    return datetime.now(UTC)


Base = declarative_base()


class Organization(Base):
    """Tenant model."""

    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=False)
    code = Column(String, unique=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    memberships = relationship("UserOrganization", back_populates="organization", cascade="all, delete-orphan")
    accounts = relationship("Account", back_populates="organization", cascade="all, delete-orphan")


class User(Base):
    """Application user."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    email = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    memberships = relationship("UserOrganization", back_populates="user", cascade="all, delete-orphan")


class UserOrganization(Base):
    """Membership of a user in an organization."""

    __tablename__ = "user_organizations"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)
    role = Column(String, nullable=False, default="viewer")
    is_default = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "organization_id", name="uq_user_organization"),)

    user = relationship("User", back_populates="memberships")
    organization = relationship("Organization", back_populates="memberships")


class AccountingPeriod(Base):
    """Fiscal period model."""

    __tablename__ = "accounting_periods"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)
    fiscal_year = Column(Integer, nullable=False)
    name = Column(String, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    is_closed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("organization_id", "fiscal_year", name="uq_period_fiscal_year"),
        CheckConstraint("end_date > start_date", name="valid_date_range"),
    )


class Account(Base):
    """Chart-of-accounts model."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)
    code = Column(String, nullable=False)
    name = Column(String, nullable=False)
    account_type = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("organization_id", "code", name="uq_account_code"),)

    organization = relationship("Organization", back_populates="accounts")


class Partner(Base):
    """Customer or supplier model."""

    __tablename__ = "partners"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)
    code = Column(String, nullable=False)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("organization_id", "code", name="uq_partner_code"),)


class JournalEntry(Base):
    """Journal entry header model."""

    __tablename__ = "journal_entries"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)
    accounting_period_id = Column(Integer, ForeignKey("accounting_periods.id"), nullable=False)
    entry_number = Column(String, nullable=False)
    entry_date = Column(Date, nullable=False)
    description = Column(Text, nullable=False)
    status = Column(String, nullable=False, default="draft")
    total_amount = Column(Numeric(15, 2), nullable=False, default=0)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    __table_args__ = (UniqueConstraint("organization_id", "entry_number", name="uq_entry_number"),)

    lines = relationship(
        "JournalEntryLine",
        back_populates="journal_entry",
        cascade="all, delete-orphan",
        order_by="JournalEntryLine.line_number",
    )


class JournalEntryLine(Base):
    """Journal entry line model."""

    __tablename__ = "journal_entry_lines"

    id = Column(Integer, primary_key=True)
    journal_entry_id = Column(Integer, ForeignKey("journal_entries.id"), nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    line_number = Column(Integer, nullable=False)
    debit_amount = Column(Numeric(15, 2), nullable=False, default=0)
    credit_amount = Column(Numeric(15, 2), nullable=False, default=0)
    description = Column(Text, nullable=True)
    partner_id = Column(Integer, ForeignKey("partners.id"), nullable=True)

    __table_args__ = (
        UniqueConstraint("journal_entry_id", "line_number", name="uq_entry_line_number"),
        CheckConstraint(
            "(debit_amount > 0 AND credit_amount = 0) OR (debit_amount = 0 AND credit_amount > 0)",
            name="either_debit_or_credit",
        ),
    )

    journal_entry = relationship("JournalEntry", back_populates="lines")
    account = relationship("Account")
    partner = relationship("Partner")


class CsvTemplate(Base):
    """Bank CSV layout model."""

    __tablename__ = "csv_templates"

    id = Column(Integer, primary_key=True)
    bank_name = Column(String, nullable=False)
    template_name = Column(String, unique=True, nullable=False)
    column_mappings = Column(JSON, nullable=False)
    date_format = Column(String, nullable=False, default="YYYY-MM-DD")
    encoding = Column(String, nullable=False, default="UTF-8")
    delimiter = Column(String, nullable=False, default=",")
    skip_rows = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)


class ImportHistory(Base):
    """CSV import attempt model."""

    __tablename__ = "import_history"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    file_name = Column(String, nullable=False)
    file_size = Column(Integer, nullable=False)
    csv_format = Column(String, nullable=True)
    total_rows = Column(Integer, nullable=False, default=0)
    imported_rows = Column(Integer, nullable=False, default=0)
    failed_rows = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False, default="pending")
    error_message = Column(Text, nullable=True)
    file_data = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)


class ImportRule(Base):
    """Description-to-account classification rule model."""

    __tablename__ = "import_rules"

    id = Column(Integer, primary_key=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)
    description_pattern = Column(String, nullable=False)
    account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    contra_account_id = Column(Integer, ForeignKey("accounts.id"), nullable=False)
    confidence = Column(Float, nullable=False, default=0.5)
    usage_count = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)
    updated_at = Column(DateTime, default=_utcnow, onupdate=_utcnow, nullable=False)

    __table_args__ = (CheckConstraint("confidence >= 0 AND confidence <= 1", name="valid_confidence"),)


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
