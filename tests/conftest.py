import os
from datetime import datetime, timedelta, timezone

import pytest
from postgrest.exceptions import APIError
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('LOCAL_DATABASE_URL', 'sqlite:///./test.db')

from dentalsync.database import Base  # noqa: E402
from dentalsync.models.local_snapshot import LocalSnapshot  # noqa: E402
from dentalsync.sync.local_store import LocalStore  # noqa: E402
from dentalsync.sync.tracker import AppointmentTracker  # noqa: E402

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


class _FakeResponse:
    def __init__(self, data):
        self.data = data


class _FakeQuery:
    def __init__(self, client: 'FakeSupabase', table_name: str):
        self.client = client
        self.table_name = table_name
        self.action = 'select'
        self.payload = None
        self.filters = []
        self.eq_values = {}
        self.orders = []
        self.limit_count = None
        self.maybe_single_mode = False

    def select(self, *_columns):
        self.action = 'select'
        return self

    def insert(self, row):
        self.action = 'insert'
        self.payload = row
        return self

    def update(self, row):
        self.action = 'update'
        self.payload = row
        return self

    def delete(self):
        self.action = 'delete'
        return self

    def eq(self, column, value):
        self.eq_values[column] = value
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda row: row.get(column) != value)
        return self

    def gte(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and row.get(column) >= value)
        return self

    def order(self, column, desc=False):
        self.orders.append((column, desc))
        return self

    def limit(self, count):
        self.limit_count = count
        return self

    def maybe_single(self):
        self.maybe_single_mode = True
        return self

    async def execute(self):
        self.client.calls.append((self.table_name, self.action))
        if (self.table_name, self.action) in self.client.fail_on or (
            self.client.fail_if is not None and self.client.fail_if(self)
        ):
            raise APIError({'message': f'{self.action} failed', 'code': '500'})

        rows = self.client.tables.setdefault(self.table_name, [])

        if self.action == 'insert':
            row = dict(self.payload)
            row.setdefault('id', self.client.next_id(self.table_name))
            created_at = self.client.next_timestamp()
            row.setdefault('created_at', created_at)
            row.setdefault('updated_at', created_at)
            rows.append(row)
            return _FakeResponse([dict(row)])

        matched = [row for row in rows if all(check(row) for check in self.filters)]

        if self.action == 'update':
            for row in matched:
                row.update(self.payload)
            return _FakeResponse([dict(row) for row in matched])

        if self.action == 'delete':
            for row in matched:
                rows.remove(row)
            return _FakeResponse([dict(row) for row in matched])

        for column, desc in reversed(self.orders):
            matched.sort(key=lambda row: row.get(column), reverse=desc)
        if self.limit_count is not None:
            matched = matched[:self.limit_count]

        if self.maybe_single_mode:
            return _FakeResponse(dict(matched[0])) if matched else None
        return _FakeResponse([dict(row) for row in matched])


class _FakeChannel:
    def __init__(self, name: str):
        self.name = name
        self.bindings = []
        self.subscribed = False

    def on_postgres_changes(self, event, callback, table='*', schema='public', filter=None):
        self.bindings.append({'event': event, 'table': table, 'schema': schema, 'callback': callback})
        return self

    async def subscribe(self):
        self.subscribed = True
        return self

    async def unsubscribe(self):
        self.subscribed = False


class FakeSupabase:
    """In-memory stand-in for the Supabase async client used by the sync layer."""

    def __init__(self):
        self.tables: dict[str, list[dict]] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_on: set[tuple[str, str]] = set()
        self.fail_if = None
        self.channels: list[_FakeChannel] = []
        self._ids: dict[str, int] = {}
        self._clock = 0

    def table(self, name: str) -> _FakeQuery:
        return _FakeQuery(self, name)

    def channel(self, name: str) -> _FakeChannel:
        channel = _FakeChannel(name)
        self.channels.append(channel)
        return channel

    def next_id(self, table_name: str) -> int:
        existing = max((row['id'] for row in self.tables.get(table_name, [])), default=0)
        self._ids[table_name] = max(self._ids.get(table_name, 100), existing) + 1
        return self._ids[table_name]

    def next_timestamp(self) -> str:
        self._clock += 1
        return (BASE_TIME + timedelta(minutes=self._clock)).isoformat()


class RecordingNotifier:
    def __init__(self):
        self.messages: list[tuple[str, str]] = []
        self.created = []
        self.confirmed = []
        self.changes = 0

    def show(self, message: str, level: str = 'info') -> None:
        self.messages.append((message, level))

    def appointment_created(self, appointment) -> None:
        self.created.append(appointment.appointment_id)

    def appointment_confirmed(self, appointment) -> None:
        self.confirmed.append(appointment.appointment_id)

    def appointments_changed(self) -> None:
        self.changes += 1


@pytest.fixture
def fake_supabase() -> FakeSupabase:
    return FakeSupabase()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def session_factory():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine, tables=[LocalSnapshot.__table__])
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        Base.metadata.drop_all(bind=engine, tables=[LocalSnapshot.__table__])
        engine.dispose()


@pytest.fixture
def local_store(session_factory) -> LocalStore:
    return LocalStore(session_factory=session_factory, secret='test-secret')


@pytest.fixture
def tracker(local_store) -> AppointmentTracker:
    return AppointmentTracker(local_store)
