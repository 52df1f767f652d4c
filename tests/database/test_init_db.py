"""Tests for the demo data seeding script."""
from datetime import date

from database.models import Client, Influencer, ProjectInfluencer
from scripts.init_db import seed_demo_data


def test_seed_inserts_demo_records(temp_db, sample_date):
    seed_demo_data(temp_db, today=sample_date)

    assert temp_db.clients.count(Client) == 2
    assert temp_db.influencers.count(Influencer) == 3
    assert temp_db.settlements.count(ProjectInfluencer) == 3
    assert len(temp_db.settlements.find_unsettled()) == 2
    assert len(temp_db.list_documents()) == 1


def test_seed_skips_when_clients_exist(temp_db):
    seed_demo_data(temp_db, today=date(2024, 1, 15))
    seed_demo_data(temp_db, today=date(2024, 1, 15))

    assert temp_db.clients.count(Client) == 2
