# -*- coding: utf-8 -*-
"""
Database models and engine helpers for the footprint engine

Tables:
- emission_factors: emission factor registry (kg CO2e per unit)
- carbon_assessments: one row per saved assessment
- assessment_emission_details: one row per entry-level result
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    create_engine,
    event,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

# Create declarative base
Base = declarative_base()


class EmissionFactorRow(Base):
    """Emission factor registry row"""

    __tablename__ = "emission_factors"

    id = Column(Integer, primary_key=True, autoincrement=True)
    category = Column(String(100), nullable=False)
    subcategory = Column(String(200), nullable=False)
    scope = Column(Integer, nullable=False)
    emission_factor = Column(Float, nullable=False)
    unit = Column(String(50), nullable=False)
    source = Column(String(255), nullable=False, default="Unknown")
    region = Column(String(20), nullable=False, default="GLOBAL")
    year = Column(Integer, nullable=True)
    methodology = Column(String(255), nullable=True)
    provenance_tier = Column(String(50), nullable=True)

    __table_args__ = (
        Index("idx_emission_factors_lookup", "category", "subcategory", "scope", "region"),
    )


class CarbonAssessmentRow(Base):
    """Saved carbon assessment with recomputed scope totals"""

    __tablename__ = "carbon_assessments"

    id = Column(String(36), primary_key=True)
    owner_id = Column(String(255), nullable=True, index=True)
    organization_name = Column(String(255), nullable=False)
    assessment_year = Column(Integer, nullable=False)
    reporting_period_start = Column(String(10), nullable=True)
    reporting_period_end = Column(String(10), nullable=True)
    assessment_boundary = Column(String(255), nullable=True)
    methodology = Column(String(100), nullable=True)

    # Totals (tonnes CO2e)
    scope1_total = Column(Float, nullable=False, default=0.0)
    scope2_total = Column(Float, nullable=False, default=0.0)
    scope3_total = Column(Float, nullable=False, default=0.0)
    total_emissions = Column(Float, nullable=False, default=0.0)
    confidence_level = Column(Float, nullable=False, default=0.0)
    data_quality_score = Column(Integer, nullable=False, default=0)

    verification_status = Column(String(50), nullable=False, default="draft")

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    details = relationship(
        "AssessmentEmissionDetailRow",
        back_populates="assessment",
        cascade="all, delete-orphan",
        order_by="AssessmentEmissionDetailRow.id",
    )


class AssessmentEmissionDetailRow(Base):
    """Entry-level emission result of a saved assessment"""

    __tablename__ = "assessment_emission_details"

    id = Column(Integer, primary_key=True, autoincrement=True)
    assessment_id = Column(
        String(36), ForeignKey("carbon_assessments.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    scope = Column(Integer, nullable=False)
    entry_index = Column(Integer, nullable=False)
    co2_emissions = Column(Float, nullable=False, default=0.0)
    ch4_emissions = Column(Float, nullable=False, default=0.0)
    n2o_emissions = Column(Float, nullable=False, default=0.0)
    other_ghg_emissions = Column(Float, nullable=False, default=0.0)
    total_emissions = Column(Float, nullable=False, default=0.0)
    emission_factor = Column(Float, nullable=False)
    emission_factor_source = Column(Text, nullable=True)
    confidence_level = Column(Float, nullable=False)

    assessment = relationship("CarbonAssessmentRow", back_populates="details")


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine for the footprint tables

    Args:
        database_url: SQLAlchemy database URL
        echo: Log SQL statements

    Returns:
        SQLAlchemy Engine
    """
    if database_url.startswith("sqlite"):
        engine_config = {
            "connect_args": {"check_same_thread": False},
            "echo": echo,
        }
        # In-memory databases live in a single shared connection
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            engine_config["poolclass"] = StaticPool
        engine = create_engine(database_url, **engine_config)

        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return engine

    return create_engine(
        database_url,
        pool_size=5,
        max_overflow=10,
        pool_timeout=30,
        pool_recycle=3600,
        echo=echo,
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to ``engine``."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine, drop_all: bool = False) -> None:
    """
    Initialize database (create all footprint tables)

    Args:
        engine: SQLAlchemy engine
        drop_all: If True, drop all tables first
    """
    if drop_all:
        Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


def is_missing_table_error(exc: Optional[BaseException]) -> bool:
    """True when a driver error reports an absent table."""
    text = str(exc).lower() if exc is not None else ""
    return "no such table" in text or "does not exist" in text


__all__ = [
    "Base",
    "EmissionFactorRow",
    "CarbonAssessmentRow",
    "AssessmentEmissionDetailRow",
    "create_db_engine",
    "make_session_factory",
    "init_db",
    "is_missing_table_error",
]
