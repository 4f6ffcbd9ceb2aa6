from __future__ import annotations

from pathlib import Path

import pytest

from app.exceptions import InvalidInputError, NotFoundError, StoredRecordError
from app.schemas import ChartConfig, Connection
from app.store import AppStore, load_template_seeds, parse_config

SEED_TEMPLATES = Path(__file__).resolve().parents[1] / "app" / "default_templates.yaml"


def test_parse_config() -> None:
    assert parse_config('{"type": "bar"}', context="test") == {"type": "bar"}
    assert parse_config("{broken", context="test") == {}
    assert parse_config("[1, 2]", context="test") == {}
    assert parse_config(None, context="test") == {}


def test_load_template_seeds() -> None:
    seeds = load_template_seeds(SEED_TEMPLATES)
    assert [seed["name"] for seed in seeds] == [
        "Top Items Analysis",
        "Trend Over Time",
        "Distribution Analysis",
    ]


def test_load_template_seeds_missing_file(tmp_path: Path) -> None:
    assert load_template_seeds(tmp_path / "missing.yaml") == []


def test_load_template_seeds_rejects_bad_shape(tmp_path: Path) -> None:
    path = tmp_path / "seeds.yaml"
    path.write_text("templates: not-a-list\n")
    with pytest.raises(ValueError, match="must be a list"):
        load_template_seeds(path)


def test_seeding_only_happens_once(store: AppStore) -> None:
    assert len(store.list_templates()) == 3
    assert store.seed_default_templates(SEED_TEMPLATES) == 0
    assert len(store.list_templates()) == 3


def test_templates_sorted_and_filtered(store: AppStore) -> None:
    assert [t.name for t in store.list_templates()] == [
        "Distribution Analysis",
        "Top Items Analysis",
        "Trend Over Time",
    ]
    trends = store.list_templates(category="Trends")
    assert [t.name for t in trends] == ["Trend Over Time"]
    assert [f.id for f in trends[0].fields] == ["xField", "yField", "groupBy"]
    assert trends[0].is_default is True


def test_malformed_template_config_reads_as_empty(store: AppStore) -> None:
    template = store.create_template(name="Broken", type="bar", config={})
    store._write(
        "UPDATE insight_templates SET config = ? WHERE id = ?", ("{oops", template.id)
    )
    loaded = store.get_template(template.id)
    assert loaded.config == {}
    assert [f.id for f in loaded.fields] == ["xField", "yField"]


def test_unknown_template(store: AppStore) -> None:
    with pytest.raises(NotFoundError, match="Template not found with ID: 42"):
        store.get_template(42)


def test_connection_lifecycle(store: AppStore, sample_db_path: Path) -> None:
    created = store.create_connection("sample", str(sample_db_path))
    assert created.name == "sample"
    assert created.path == str(sample_db_path.resolve())
    assert created.table_count == 4
    assert created.size_bytes and created.size_bytes > 0
    assert created.is_valid is True

    store.touch_connection(created.id)
    assert [c.id for c in store.list_connections()] == [created.id]

    store.delete_connection(created.id)
    with pytest.raises(NotFoundError):
        store.get_connection(created.id)
    with pytest.raises(NotFoundError):
        store.delete_connection(created.id)


def test_create_connection_rejects_missing_file(store: AppStore, tmp_path: Path) -> None:
    with pytest.raises(InvalidInputError):
        store.create_connection("ghost", str(tmp_path / "ghost.db"))
    assert store.list_connections() == []


def test_visualization_crud(store: AppStore, connection: Connection) -> None:
    config = ChartConfig(type="bar", table="orders", x_field="region", y_field="amount")
    created = store.create_visualization(
        connection_id=connection.id, name="By region", config=config
    )
    assert created.type == "bar"
    assert created.table_name == "orders"
    assert created.config == config

    updated = store.update_visualization(
        created.id, config=config.model_copy(update={"type": "line"})
    )
    assert updated.name == "By region"
    assert updated.type == "line"

    renamed = store.update_visualization(created.id, name="Regions")
    assert renamed.name == "Regions"
    assert renamed.type == "line"

    assert [v.id for v in store.list_visualizations()] == [created.id]
    store.delete_visualization(created.id)
    with pytest.raises(NotFoundError):
        store.get_visualization(created.id)


def test_visualization_requires_connection(store: AppStore) -> None:
    config = ChartConfig(type="bar", table="orders", x_field="region", y_field="amount")
    with pytest.raises(NotFoundError, match="Connection not found"):
        store.create_visualization(connection_id=7, name="orphan", config=config)


def test_deleting_connection_cascades_to_visualizations(
    store: AppStore, connection: Connection
) -> None:
    config = ChartConfig(type="pie", table="sales", x_field="region", y_field="amount")
    created = store.create_visualization(
        connection_id=connection.id, name="Sales", config=config
    )
    store.delete_connection(connection.id)
    with pytest.raises(NotFoundError):
        store.get_visualization(created.id)


def test_malformed_visualization_config_is_skipped_in_listing(
    store: AppStore, connection: Connection
) -> None:
    config = ChartConfig(type="bar", table="sales", x_field="region", y_field="amount")
    good = store.create_visualization(connection_id=connection.id, name="Good", config=config)
    broken = store.create_visualization(
        connection_id=connection.id, name="Broken", config=config
    )
    store._write(
        "UPDATE saved_visualizations SET config = ? WHERE id = ?", ("{not json", broken.id)
    )

    assert [v.id for v in store.list_visualizations()] == [good.id]
    with pytest.raises(StoredRecordError, match=f"Visualization {broken.id}"):
        store.get_visualization(broken.id)

    repaired = store.update_visualization(broken.id, config=config)
    assert repaired.name == "Broken"
    assert repaired.config == config
    store.delete_visualization(good.id)
    assert [v.id for v in store.list_visualizations()] == [broken.id]


def test_create_template_rejects_malformed_fields_before_writing(store: AppStore) -> None:
    with pytest.raises(InvalidInputError, match="Invalid template field"):
        store.create_template(name="Bad", type="bar", config={"fields": [{"id": "x"}]})
    assert "Bad" not in [t.name for t in store.list_templates()]
