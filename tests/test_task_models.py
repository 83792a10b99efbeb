# tests/test_task_models.py

from __future__ import annotations

import pytest

from taskboard.tasks.task_models import (
    Task,
    TaskStatus,
    clean_task_fields,
    validate_task_fields,
)


def test_task_from_rails_payload() -> None:
    task = Task.from_dict(
        {
            "id": 7,
            "title": "Write docs",
            "description": "README and usage",
            "status": "in_progress",
            "created_at": "2025-10-26T06:27:48.123Z",
            "updated_at": "2025-10-26T06:30:00.000Z",
        }
    )
    assert task.id == 7
    assert task.status is TaskStatus.IN_PROGRESS
    assert task.created_at.tzinfo is not None
    assert task.updated_at >= task.created_at
    assert task.to_dict()["status"] == "in_progress"


def test_task_from_dict_rejects_missing_id_and_unknown_status() -> None:
    with pytest.raises(ValueError):
        Task.from_dict({"title": "x", "created_at": "2025-10-26T06:27:48Z"})
    with pytest.raises(ValueError):
        Task.from_dict({"id": 1, "status": "archived", "created_at": "2025-10-26T06:27:48Z"})


def test_status_parse_is_strict_but_from_db_is_lenient() -> None:
    assert TaskStatus.parse("done") is TaskStatus.DONE
    assert TaskStatus.parse(TaskStatus.TODO) is TaskStatus.TODO
    with pytest.raises(ValueError):
        TaskStatus.parse("blocked")
    assert TaskStatus.from_db("blocked") is TaskStatus.TODO
    assert TaskStatus.from_db(None) is TaskStatus.TODO


def test_validate_create_fields() -> None:
    assert validate_task_fields({"title": "t", "description": "d"}) == {}

    errors = validate_task_fields({"title": "  ", "description": ""})
    assert errors["title"] == ["Title can't be blank"]
    assert errors["description"] == ["Description can't be blank"]

    errors = validate_task_fields({"title": "t", "description": "d", "status": "later"})
    assert errors == {"status": ["Status is not included in the list"]}


def test_title_limit_counts_code_points() -> None:
    assert validate_task_fields({"title": "é" * 255, "description": "d"}) == {}
    errors = validate_task_fields({"title": "é" * 256, "description": "d"})
    assert errors["title"] == ["Title is too long (maximum is 255 characters)"]


def test_partial_validation_checks_only_supplied_fields() -> None:
    assert validate_task_fields({"status": "done"}, partial=True) == {}
    assert validate_task_fields({}, partial=True) == {}
    assert "title" in validate_task_fields({"title": ""}, partial=True)


def test_clean_task_fields_drops_unknown_keys() -> None:
    clean = clean_task_fields({"status": TaskStatus.DONE, "id": 5, "created_at": "x"})
    assert clean == {"status": "done"}
