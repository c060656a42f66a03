from job_aggregator.storage import ALERTS_KEY, StateStore


def test_missing_key_reads_as_default(tmp_path) -> None:
    with StateStore(tmp_path / "state.sqlite") as store:
        assert store.get_json(ALERTS_KEY, []) == []
        assert store.get_json("nope") is None


def test_values_survive_reopen(tmp_path) -> None:
    db_path = tmp_path / "nested" / "state.sqlite"

    with StateStore(db_path) as store:
        store.set_json(ALERTS_KEY, [{"id": "a"}])
        store.set_json(ALERTS_KEY, [{"id": "b"}])

    with StateStore(db_path) as store:
        assert store.get_json(ALERTS_KEY) == [{"id": "b"}]
        assert store.keys() == [ALERTS_KEY]


def test_unreadable_value_falls_back_to_default(tmp_path) -> None:
    with StateStore(tmp_path / "state.sqlite") as store:
        with store.conn:
            store.conn.execute("INSERT INTO kv (key, value) VALUES (?, ?)", ("broken", "{not json"))
        assert store.get_json("broken", {}) == {}


def test_delete_removes_key() -> None:
    with StateStore(":memory:") as store:
        store.set_json("k", 1)
        store.delete("k")
        assert store.get_raw("k") is None
