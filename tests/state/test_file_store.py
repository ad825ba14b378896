import os

import pytest

from tagenv.deploy.errors import NotFoundError, StateStoreError
from tagenv.deploy.models import Environment, Phase, ResourceKind
from tagenv.state.store import FileStateStore


def test_save_then_load_roundtrip(tmp_path):
    store = FileStateStore(tmp_path)
    env = Environment(id="e1", phase=Phase.PROVISIONING, run_id="r1",
                      resource_handles={ResourceKind.RESOURCE_GROUP: "rg-wordpress-e1"},
                      completed_steps=["e1:create-resource-group"])
    store.save(env)

    loaded = store.load("e1")
    assert loaded == env
    assert (tmp_path / "environments" / "e1.json").is_file()


def test_missing_record_is_not_found(tmp_path):
    with pytest.raises(NotFoundError):
        FileStateStore(tmp_path).load("nope")


def test_records_survive_a_new_store_instance(tmp_path):
    FileStateStore(tmp_path).save(Environment(id="e1", phase=Phase.READY, endpoint="http://1.2.3.4/"))
    assert FileStateStore(tmp_path).load("e1").endpoint == "http://1.2.3.4/"


def test_save_replaces_whole_record_and_leaves_no_temp_files(tmp_path):
    store = FileStateStore(tmp_path)
    store.save(Environment(id="e1"))
    store.save(Environment(id="e1", phase=Phase.PROVISIONING))
    assert store.load("e1").phase is Phase.PROVISIONING
    assert os.listdir(tmp_path / "environments") == ["e1.json"]


def test_failed_write_keeps_previous_record(tmp_path, monkeypatch):
    store = FileStateStore(tmp_path)
    store.save(Environment(id="e1"))

    def boom(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr(os, "replace", boom)
    with pytest.raises(StateStoreError):
        store.save(Environment(id="e1", phase=Phase.PROVISIONING))
    monkeypatch.undo()

    assert store.load("e1").phase is Phase.REQUESTED
    assert os.listdir(tmp_path / "environments") == ["e1.json"]


def test_corrupt_record_raises_store_error(tmp_path):
    d = tmp_path / "environments"
    d.mkdir()
    (d / "e1.json").write_text("{not json")
    with pytest.raises(StateStoreError):
        FileStateStore(tmp_path).load("e1")


def test_ids_cannot_escape_the_directory(tmp_path):
    with pytest.raises(StateStoreError):
        FileStateStore(tmp_path).load("../etc")


def test_list(tmp_path):
    store = FileStateStore(tmp_path)
    assert store.list() == []
    for i in ("b", "a"):
        store.save(Environment(id=i))
    assert [e.id for e in store.list()] == ["a", "b"]
