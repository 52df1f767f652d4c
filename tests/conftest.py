"""Shared fixtures.

Every test gets a fresh DatabaseManager bound to a temp-file SQLite
database, plus a ``make`` factory for the records most tests need.
"""
import os
import shutil
import tempfile
from datetime import date

import pytest

from database import DatabaseManager
from database.models import Client, Influencer, Project, ProjectInfluencer, Transaction


@pytest.fixture
def temp_db():
    """Yield a fresh DatabaseManager bound to a temp SQLite database."""
    temp_dir = tempfile.mkdtemp(prefix="db-tests-")
    db_path = os.path.join(temp_dir, "test.db")
    manager = DatabaseManager(database_url=f"sqlite:///{db_path}")
    manager.create_tables()

    try:
        yield manager
    finally:
        manager.close()
        shutil.rmtree(temp_dir, ignore_errors=True)


@pytest.fixture
def sample_date():
    """Stable date value for deterministic tests (a Monday)."""
    return date(2024, 1, 15)


class RecordFactory:
    """Creates ORM records with sensible defaults."""

    def __init__(self, db):
        self.db = db

    def client(self, name="뷰티랩", **values):
        values.setdefault("contact_name", "김담당")
        values.setdefault("phone", "010-0000-0000")
        return self.db.clients.create(Client, name=name, **values)

    def project(self, client=None, name="봄 캠페인", **values):
        client = client or self.client()
        return self.db.projects.create(
            Project, name=name, client_id=client.id, **values
        )

    def influencer(self, name="지수", **values):
        return self.db.influencers.create(Influencer, name=name, **values)

    def settlement(self, project, influencer, fee=100000, **values):
        return self.db.settlements.create(
            ProjectInfluencer, project_id=project.id,
            influencer_id=influencer.id, fee=fee, **values
        )

    def transaction(self, tx_date, tx_type="REVENUE", amount=100000,
                    category=None, **values):
        if category is None:
            category = "CAMPAIGN_FEE" if tx_type == "REVENUE" else "AD_EXPENSE"
        return self.db.transactions.create(
            Transaction, date=tx_date, type=tx_type, category=category,
            amount=amount, **values
        )


@pytest.fixture
def make(temp_db):
    """Record factory bound to temp_db."""
    return RecordFactory(temp_db)
