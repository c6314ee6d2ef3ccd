"""
EmailMonitoringConfig — system-wide email provider selection and credentials.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, String, Text

from app.db.models.base import Base, generate_uuid, utcnow


class EmailMonitoringConfig(Base):
    """Provider (office365 | gmail) plus that provider's credentials."""

    __tablename__ = "email_monitoring_config"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    provider = Column(String(20), nullable=False, default="office365")

    # ── Office 365 (Graph, client credentials) ──
    tenant_id = Column(String(255), nullable=True)
    client_id = Column(String(255), nullable=True)
    client_secret = Column(Text, nullable=True)

    # ── Gmail (OAuth refresh token) ───────────
    gmail_client_id = Column(String(255), nullable=True)
    gmail_client_secret = Column(Text, nullable=True)
    gmail_refresh_token = Column(Text, nullable=True)

    default_send_from_email = Column(String(320), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
