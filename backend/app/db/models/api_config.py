"""
API configuration tables read by the API endpoint and multipart steps.

    api_settings           — the main API: base path + bearer credential
    secondary_api_configs  — named alternate APIs
    api_auth_config        — login endpoint for a username/password → token exchange
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, String, Text

from app.db.models.base import Base, generate_uuid, utcnow


class ApiSettings(Base):
    """Main API settings (single row in practice)."""

    __tablename__ = "api_settings"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    path = Column(String(1000), nullable=True)       # base URL
    password = Column(Text, nullable=True)           # bearer token
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class SecondaryApiConfig(Base):
    """A named alternate API."""

    __tablename__ = "secondary_api_configs"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    base_url = Column(String(1000), nullable=True)
    auth_token = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class ApiAuthConfig(Base):
    """Credentials for a token-exchange login."""

    __tablename__ = "api_auth_config"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=True)
    login_endpoint = Column(String(1000), nullable=True)
    username = Column(String(255), nullable=True)
    password = Column(Text, nullable=True)
    token_field_name = Column(String(100), nullable=True, default="access_token")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
