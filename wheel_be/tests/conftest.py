import os

# Config is validated at import time; make sure it never takes the production path under test.
os.environ.setdefault('FLASK_ENV', 'development')
os.environ.setdefault('TESTING', 'true')

import pytest

from wheel_be.app import create_app
from wheel_be.config import TestingConfig
from wheel_be.models import db
from wheel_be.services.wheel_admin_service import WheelAdminService


@pytest.fixture
def app():
    app, _ = create_app(TestingConfig)
    with app.app_context():
        db.drop_all()
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()
    db_file = TestingConfig.DATABASE_FILE_PATH
    if os.path.exists(db_file):
        os.remove(db_file)


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_campaign(app):
    """Create a live campaign from a list of slice costs.

    Zero-cost slices default to type 'lose', paid ones to 'cash'; pass
    ``types`` to override per position.
    """
    def _make(costs, total_budget=100, mode='manual', target_spins=None,
              spins_per_window=-1, types=None, max_wins=None, status='live', **budget_config):
        segments = []
        for index, cost in enumerate(costs):
            segments.append({
                'type': types[index] if types else ('lose' if cost == 0 else 'cash'),
                'label': f"Slice {index}",
                'cost': cost,
                'max_wins': (max_wins or {}).get(index),
            })
        return WheelAdminService().create_campaign(
            name='Test wheel',
            total_budget=total_budget,
            mode=mode,
            target_spins=target_spins,
            segments=segments,
            status=status,
            spins_per_window=spins_per_window,
            **budget_config
        )
    return _make
