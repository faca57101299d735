# backend/pressdesk/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/pressdesk.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///pressdesk.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Shared key every gateway caller presents in the "apikey" header
    GATEWAY_API_KEY = os.environ.get("GATEWAY_API_KEY", "dev-gateway-key")

    # PEM private key for the signing authority (PKCS#8 or PKCS#1).
    # Left unset, /functions/v1/qz-sign answers with a misconfiguration error.
    QZ_PRIVATE_KEY = os.environ.get("QZ_PRIVATE_KEY")

    # Public certificate served to print agents as their trust anchor
    QZ_CERTIFICATE_PATH = os.environ.get("QZ_CERTIFICATE_PATH", "qz-keys/qz-digital-certificate.txt")

    # Seconds between SSE keep-alive comments on the push channel
    REALTIME_KEEPALIVE_SECONDS = float(os.environ.get("REALTIME_KEEPALIVE_SECONDS", "15"))
