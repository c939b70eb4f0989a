"""Shared test fixtures."""
from datetime import date, datetime, timezone

import pytest
from unittest.mock import patch
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ledger.database import Base


class FakeRedis:
    """Minimal in-memory Redis fake: strings, hashes, pipelines and locks."""

    def __init__(self):
        self.get_store = {}
        self.hash_store = {}

    def get(self, key):
        return self.get_store.get(key)

    def set(self, key, value, nx=False, ex=None):
        if nx and key in self.get_store:
            return None
        self.get_store[key] = value
        return True

    def incr(self, key):
        val = int(self.get_store.get(key, 0)) + 1
        self.get_store[key] = str(val)
        return val

    def delete(self, *keys):
        for k in keys:
            self.get_store.pop(k, None)
            self.hash_store.pop(k, None)

    def hset(self, key, field, value):
        self.hash_store.setdefault(key, {})[field] = value

    def hincrby(self, key, field, amount):
        h = self.hash_store.setdefault(key, {})
        h[field] = str(int(h.get(field, 0)) + amount)

    def hgetall(self, key):
        return dict(self.hash_store.get(key, {}))

    def pipeline(self):
        return FakePipeline(self)

    def lock(self, name, timeout=None):
        return FakeLock(self, name)


class FakePipeline:
    """Fake Redis pipeline that executes on execute()."""

    def __init__(self, redis):
        self._redis = redis
        self._ops = []

    def set(self, key, value):
        self._ops.append(('set', key, value))
        return self

    def delete(self, *keys):
        self._ops.append(('delete', keys))
        return self

    def hincrby(self, key, field, amount):
        self._ops.append(('hincrby', key, field, amount))
        return self

    def hset(self, key, field, value):
        self._ops.append(('hset', key, field, value))
        return self

    def execute(self):
        for op in self._ops:
            if op[0] == 'set':
                self._redis.set(op[1], op[2])
            elif op[0] == 'delete':
                self._redis.delete(*op[1])
            elif op[0] == 'hincrby':
                self._redis.hincrby(op[1], op[2], op[3])
            elif op[0] == 'hset':
                self._redis.hset(op[1], op[2], op[3])
        self._ops = []


class FakeLock:
    """Non-reentrant lock stored as a plain key, like redis-py's Lock."""

    def __init__(self, redis, name):
        self._redis = redis
        self.name = name

    def acquire(self, blocking=True):
        return bool(self._redis.set(self.name, 'locked', nx=True))

    def release(self):
        self._redis.delete(self.name)


@pytest.fixture
def db_engine():
    """In-memory SQLite engine shared by every session in the test."""
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    import ledger.models.partner
    import ledger.models.introduction
    import ledger.models.hire
    import ledger.models.placement
    import ledger.models.audit_log
    import ledger.models.registered_advisor
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(autouse=True)
def patch_session_factory(db_engine):
    """Route every get_session() call to the in-memory database."""
    factory = sessionmaker(bind=db_engine, expire_on_commit=False)
    with patch('ledger.database.SessionLocal', factory):
        yield factory


@pytest.fixture(autouse=True)
def no_slack():
    """Slack stays off unless a test turns it on."""
    with patch('ledger.services.notifications.SLACK_WEBHOOK_URL', None):
        yield


@pytest.fixture
def fake_redis():
    """In-memory Redis fake with dict-backed storage."""
    return FakeRedis()


@pytest.fixture
def app(fake_redis):
    """Flask test app with Redis swapped for the in-memory fake."""
    from ledger import create_app
    with patch('ledger.extensions.redis_client', fake_redis), \
            patch('ledger.config.ADMIN_API_KEY', None):
        app = create_app()
        app.config['TESTING'] = True
        yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


# ── Domain factories ─────────────────────────────────────────────────────────

PARTNER_KEY = 'k' * 40


@pytest.fixture
def make_partner():
    """Factory fixture — creates a partner through the registry service."""
    from ledger.services.partners import create_partner

    counter = {'n': 0}

    def _make(name=None, api_key=None, placement_terms=None, webhook_url=None):
        counter['n'] += 1
        return create_partner(
            name=name or f'Partner {counter["n"]}',
            api_key=api_key or f'{counter["n"]:02d}' + PARTNER_KEY,
            placement_terms=placement_terms,
            webhook_url=webhook_url,
        )
    return _make


@pytest.fixture
def partner(make_partner):
    return make_partner(name='Boardy', placement_terms={'flat_fee': 15000, 'attribution_window_months': 12})


@pytest.fixture
def make_introduction():
    """Factory fixture — creates an introduction; returns the Introduction."""
    from ledger.services.introductions import create_introduction

    def _make(partner_id, candidate_crd=1234567, conversation_id='conv-1',
              intro_timestamp=None, first_name='Jane', last_name='Doe', **extra):
        intro, _ = create_introduction(
            partner_id=partner_id,
            candidate_crd=candidate_crd,
            conversation_id=conversation_id,
            intro_timestamp=intro_timestamp or datetime(2025, 1, 15, 14, 30, tzinfo=timezone.utc),
            first_name=first_name,
            last_name=last_name,
            **extra,
        )
        return intro
    return _make


@pytest.fixture
def make_hire():
    """Factory fixture — creates a hire; returns the Hire."""
    from ledger.services.hires import create_hire

    def _make(crd_number=1234567, hire_date=None, firm_entity='Acme Securities', **extra):
        hire, _ = create_hire(
            crd_number=crd_number,
            firm_entity=firm_entity,
            hire_date=hire_date or date(2025, 6, 1),
            first_name=extra.pop('first_name', 'Jane'),
            last_name=extra.pop('last_name', 'Doe'),
            **extra,
        )
        return hire
    return _make
