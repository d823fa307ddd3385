"""Tests for TrainData and its persistence."""

import json
import logging

from gesture_arbiter.stats import StatsStore
from gesture_arbiter.train_data import PersistedState, TrainData, TrainDataStore

from conftest import make_sample


class TestTrainData:
    def test_counters_keyed_by_string(self):
        td = TrainData()
        td.inc_user_gesture_count(3)
        td.inc_user_gesture_count("3")
        td.inc_common_gesture_count("circle")
        td.inc_failed_gesture_count("demo_")
        assert td.user_gesture_count == {"3": 2}
        assert td.summary() == {"user": 2, "common": 1, "failed": 1, "total": 4}

    def test_mark_user_preferred(self):
        td = TrainData()
        td.mark_user_preferred(2)
        td.mark_user_preferred("heart")
        td.mark_user_preferred("heart")
        assert td.use_user_gesture == {2: True}
        assert td.use_predefined_user_gesture == {"heart": True}


class TestTrainDataStore:
    def test_round_trip(self, tmp_path):
        td = TrainData()
        td.train_progress[101] = 0.6
        td.mark_user_preferred(4)
        td.mark_user_preferred("circle")
        td.inc_common_gesture_count("circle")
        stats = StatsStore()
        stats.scope("demo_").ensure("circle").add_common_error()
        snapshot = [make_sample(5, 1), make_sample(6, 2)]

        store = TrainDataStore(tmp_path / "data" / "trainData.json")
        store.save(PersistedState(td, stats, {"circle": snapshot}))
        loaded = store.load()

        assert loaded.train_data == td
        assert loaded.stats.to_dict() == stats.to_dict()
        assert [s.entry_count for s in loaded.smart_train_snapshots["circle"]] == [5, 6]

    def test_missing_file_gives_fresh_state(self, tmp_path):
        state = TrainDataStore(tmp_path / "none.json").load()
        assert state.train_data == TrainData()
        assert state.stats.paths() == []

    def test_corrupt_file_gives_fresh_state(self, tmp_path, caplog):
        path = tmp_path / "trainData.json"
        path.write_text("{not json")
        with caplog.at_level(logging.WARNING, logger="gesture_arbiter.train_data"):
            state = TrainDataStore(path).load()
        assert state.train_data == TrainData()
        assert "failed" in caplog.text

    def test_document_layout(self, tmp_path):
        path = tmp_path / "trainData.json"
        TrainDataStore(path).save(PersistedState())
        data = json.loads(path.read_text())
        assert data["version"] == 1
        assert set(data) == {"version", "train_data", "stats", "smart_train_snapshots"}
        assert not (tmp_path / "trainData.json.tmp").exists()
