"""Schema management for SQL-backed providers.

Only providers of the ``postgresql`` or ``sqlite`` kind have a schema; the
in-memory provider used in development and tests is skipped.
"""

import structlog
from protean.domain import Domain
from sqlalchemy import create_engine

logger = structlog.get_logger(__name__)

SQL_PROVIDERS = ("postgresql", "sqlite")


def _sql_providers(domain: Domain):
    for name, provider in domain.providers.items():
        if provider.conn_info["provider"] in SQL_PROVIDERS:
            yield name, provider


def _register_models(domain: Domain, provider_name: str) -> None:
    """Build the SQLAlchemy model of every aggregate and entity on the provider."""
    records = list(domain.registry.aggregates.values()) + list(domain.registry.entities.values())
    for record in records:
        if record.cls.meta_.provider == provider_name:
            domain.repository_for(record.cls)._dao  # noqa: B018


def setup_db(domain: Domain) -> None:
    with domain.domain_context():
        for name, provider in _sql_providers(domain):
            _register_models(domain, name)
            provider._metadata.create_all(create_engine(provider.conn_info["database_uri"]))
            logger.info("schema_created", provider=name)


def drop_db(domain: Domain) -> None:
    with domain.domain_context():
        for name, provider in _sql_providers(domain):
            _register_models(domain, name)
            provider._metadata.drop_all(create_engine(provider.conn_info["database_uri"]))
            logger.info("schema_dropped", provider=name)
