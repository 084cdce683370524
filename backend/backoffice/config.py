# backend/backoffice/config.py
from __future__ import annotations
import math
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///backoffice.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Upper bound for every collaborator call (database, session lookup,
    # credential issuance). Expiry fails closed.
    COLLABORATOR_TIMEOUT_SECONDS = float(os.environ.get("COLLABORATOR_TIMEOUT_SECONDS", "5"))

    # Deployment super-user: always resolves to the administrator role
    SUPERUSER_EMAIL = os.environ.get("SUPERUSER_EMAIL") or None

    # Literal an operator must type to remove a staff record
    REMOVAL_CONFIRMATION = os.environ.get("REMOVAL_CONFIRMATION", "REMOVE")

    # "local" keeps bcrypt hashes in our database, "remote" also calls a hosted auth admin API
    CREDENTIAL_ISSUER = os.environ.get("CREDENTIAL_ISSUER", "local")
    CREDENTIAL_API_URL = os.environ.get("CREDENTIAL_API_URL")
    CREDENTIAL_API_KEY = os.environ.get("CREDENTIAL_API_KEY")

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))


def engine_options(database_uri: str, timeout_seconds: float) -> dict:
    """
    SQLAlchemy engine options that bound every database call by timeout_seconds.

    SQLite: busy timeout on the connection.
    PostgreSQL: connect timeout, pool checkout timeout and statement_timeout.
    """
    if database_uri.startswith("sqlite"):
        return {"connect_args": {"timeout": timeout_seconds}}

    options = {"pool_timeout": timeout_seconds, "pool_pre_ping": True}
    if database_uri.startswith("postgresql"):
        options["connect_args"] = {
            "connect_timeout": max(1, math.ceil(timeout_seconds)),
            "options": f"-c statement_timeout={int(timeout_seconds * 1000)}",
        }
    return options
