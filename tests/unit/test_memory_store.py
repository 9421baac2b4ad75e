"""
Unit tests for the in-memory entity store.
"""

import pytest

from aid_orchestrator.errors import EntityNotFound, StoreError
from aid_orchestrator.models import Container


def _container(uid="abc", running=False):
    return Container(uid=uid, port="9000", image="img1", running=running)


def test_crud(store):
    created = store.containers.create(_container())
    assert store.containers.find_by_uid("abc") == created

    updated = store.containers.update("abc", running=True)
    assert updated.running is True
    assert created.running is False  # records are immutable snapshots

    assert store.containers.list_all() == [updated]
    store.containers.delete("abc")
    assert store.containers.list_all() == []


def test_not_found_is_distinct(store):
    with pytest.raises(EntityNotFound) as exc:
        store.images.find_by_uid("nope")
    assert str(exc.value) == "Cannot fetch image nope"
    with pytest.raises(EntityNotFound):
        store.containers.update("nope", running=True)
    with pytest.raises(EntityNotFound):
        store.solvers.delete("nope")


def test_duplicate_create(store):
    store.containers.create(_container())
    with pytest.raises(StoreError):
        store.containers.create(_container())


def test_uid_cannot_change(store):
    store.containers.create(_container())
    with pytest.raises(StoreError):
        store.containers.update("abc", uid="other")
    assert store.containers.find_by_uid("abc").uid == "abc"


def test_ping(store):
    assert store.ping() is True
