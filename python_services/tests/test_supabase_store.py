import pytest

from shared.config import Settings
from shared.models import BloomLevel, InstructionalSuite, OutputType, QuestionSection, TextSection
from shared.supabase_store import SuiteRepository, get_suite_repository, row_to_suite, suite_to_row


class _Result:
    def __init__(self, data):
        self.data = data


class _Query:
    def __init__(self, table):
        self.table = table
        self.ops = []

    def __getattr__(self, name):
        def _record(*args, **kwargs):
            self.ops.append((name, args, kwargs))
            return self

        return _record

    async def execute(self):
        self.table.executed.append(self.ops)
        return _Result(self.table.rows)


class _Table:
    def __init__(self, rows):
        self.rows = rows
        self.executed = []

    def __call__(self, name):
        self.name = name
        return _Query(self)


class _FakeClient:
    def __init__(self, rows=None):
        self.table = _Table(rows or [])


def _suite() -> InstructionalSuite:
    return InstructionalSuite(
        id="suite_9",
        node_id="node-1",
        title="Fractions Worksheet",
        output_type=OutputType.WORKSHEET,
        bloom_level=BloomLevel.RECALL,
        sections=[
            TextSection(id="s1", title="Intro", content="Parts of a whole."),
            QuestionSection(id="s2", title="Pick", content="Larger?", options=["1/4", "1/2"], correct_answer=1),
        ],
        doodle_prompt="pizza slices",
    )


def test_suite_to_row_uses_table_columns() -> None:
    row = suite_to_row(_suite())

    assert row["id"] == "suite_9"
    assert row["node_id"] == "node-1"
    assert row["output_type"] == "Worksheet"
    assert row["doodle_prompt"] == "pizza slices"
    assert row["doodle_base64"] is None
    assert row["sections"][1]["correctAnswer"] == 1
    assert "teacherKey" not in row


def test_row_to_suite_ignores_storage_only_columns() -> None:
    row = suite_to_row(_suite())
    row.update(user_id="u1", updated_at="2026-01-01T00:00:00+00:00")

    suite = row_to_suite(row)

    assert suite.id == "suite_9"
    assert suite.sections[1].correct_answer == 1
    assert [k.section_id for k in suite.teacher_key] == ["s2"]


@pytest.mark.asyncio
async def test_save_suite_upserts_row() -> None:
    client = _FakeClient()
    repository = SuiteRepository("https://example.supabase.co", "key", client=client)

    await repository.save_suite(_suite())

    ((name, args, _),) = client.table.executed[0]
    assert client.table.name == "instructional_suites"
    assert name == "upsert"
    assert args[0]["id"] == "suite_9"


@pytest.mark.asyncio
async def test_load_suites_skips_unreadable_rows() -> None:
    good = suite_to_row(_suite())
    bad = {"id": "broken", "title": "x", "sections": [{"type": "hologram"}]}
    client = _FakeClient(rows=[good, bad])
    repository = SuiteRepository("https://example.supabase.co", "key", client=client)

    suites = await repository.load_suites(limit=5)

    assert [s.id for s in suites] == ["suite_9"]
    ops = [op[0] for op in client.table.executed[0]]
    assert ops == ["select", "order", "limit"]


@pytest.mark.asyncio
async def test_delete_suite_filters_by_id() -> None:
    client = _FakeClient()
    repository = SuiteRepository("https://example.supabase.co", "key", client=client)

    await repository.delete_suite("suite_9")

    assert client.table.executed[0] == [("delete", (), {}), ("eq", ("id", "suite_9"), {})]


def test_repository_disabled_without_credentials() -> None:
    assert get_suite_repository(Settings(_env_file=None, SUPABASE_URL=None, SUPABASE_KEY=None)) is None
