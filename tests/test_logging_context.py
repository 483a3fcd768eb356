"""Tests for logging context propagation."""

import contextvars
import threading

import pytest

from job_alerts.logging.context import (
    clear_log_context,
    get_log_context,
    log_context,
    pop_log_context,
    push_log_context,
)


@pytest.fixture(autouse=True)
def clean_context():
    clear_log_context()
    yield
    clear_log_context()


def test_empty_context():
    assert get_log_context() == {}


def test_push_and_pop():
    token = push_log_context(posting_id="job-1", event_id="evt-9")
    assert get_log_context() == {"posting_id": "job-1", "event_id": "evt-9"}

    pop_log_context(token)
    assert get_log_context() == {}


def test_nested_pushes_restore_in_order():
    outer = push_log_context(posting_id="job-1")
    inner = push_log_context(owner_id="user-1")
    assert get_log_context() == {"posting_id": "job-1", "owner_id": "user-1"}

    pop_log_context(inner)
    assert get_log_context() == {"posting_id": "job-1"}
    pop_log_context(outer)
    assert get_log_context() == {}


def test_inner_value_overrides_outer():
    with log_context(owner_id="user-1"):
        with log_context(owner_id="user-2"):
            assert get_log_context()["owner_id"] == "user-2"
        assert get_log_context()["owner_id"] == "user-1"


def test_context_manager_restores_on_error():
    with pytest.raises(RuntimeError):
        with log_context(posting_id="job-1"):
            raise RuntimeError("boom")

    assert get_log_context() == {}


def test_returned_dict_is_a_copy():
    with log_context(posting_id="job-1"):
        snapshot = get_log_context()
        snapshot["posting_id"] = "tampered"
        assert get_log_context()["posting_id"] == "job-1"


def test_copied_context_carries_fields_into_worker_thread():
    seen = {}

    def worker():
        seen.update(get_log_context())

    with log_context(posting_id="job-1"):
        ctx = contextvars.copy_context()

    thread = threading.Thread(target=ctx.run, args=(worker,))
    thread.start()
    thread.join()

    assert seen == {"posting_id": "job-1"}
