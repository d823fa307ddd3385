"""Tests for the gesture-arbiter CLI."""

import json

from typer.testing import CliRunner

from gesture_arbiter.cli import app
from gesture_arbiter.recorder import SampleRecorder
from gesture_arbiter.train_data import PersistedState, TrainData, TrainDataStore

from test_reference import shape

runner = CliRunner()


def write_session(path, items):
    rec = SampleRecorder()
    rec.start()
    for label, sample in items:
        rec.add(sample, label=label)
    rec.stop()
    rec.save(path)
    return path


class TestInfo:
    def test_summary(self, tmp_path):
        td = TrainData()
        td.train_progress[101] = 0.4
        td.inc_common_gesture_count("circle")
        td.mark_user_preferred("heart")
        path = tmp_path / "trainData.json"
        TrainDataStore(path).save(PersistedState(train_data=td))

        result = runner.invoke(app, ["info", str(path)])
        assert result.exit_code == 0
        assert "Common matches:  1" in result.output
        assert "40%" in result.output
        assert "heart" in result.output

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["info", str(tmp_path / "nope.json")])
        assert result.exit_code == 1


class TestReplay:
    def test_replay_with_templates(self, tmp_path):
        templates = write_session(tmp_path / "templates.json", [("circle", shape("circle")), ("wave", shape("wave"))])
        session = write_session(tmp_path / "session.json", [(None, shape("wave", amplitude=1.3))])

        result = runner.invoke(app, [
            "replay", str(session),
            "--templates", str(templates),
            "--mode", "developer_defined",
            "--metrics",
        ])
        assert result.exit_code == 0, result.output
        assert "predefined_matched" in result.output
        assert "gesture='wave'" in result.output
        assert 'gesture_arbiter_events_total{event="predefined_matched"} 1' in result.output

    def test_unknown_mode(self, tmp_path):
        session = write_session(tmp_path / "session.json", [])
        result = runner.invoke(app, ["replay", str(session), "--mode", "juggle"])
        assert result.exit_code != 0

    def test_missing_session(self, tmp_path):
        result = runner.invoke(app, ["replay", str(tmp_path / "missing.json")])
        assert result.exit_code == 1

    def test_train_and_persist(self, tmp_path):
        session = write_session(tmp_path / "session.json", [(None, shape("circle"))] * 2)
        data = tmp_path / "trainData.json"
        result = runner.invoke(app, [
            "replay", str(session),
            "--mode", "train_player_signature",
            "--targets", "101",
            "--data", str(data),
        ])
        assert result.exit_code == 0, result.output
        saved = json.loads(data.read_text())
        assert saved["train_data"]["train_progress"] == {"101": 0.4}


class TestResetSmartTrain:
    def test_clears_flags(self, tmp_path):
        td = TrainData()
        td.mark_user_preferred("heart")
        td.mark_user_preferred(3)
        path = tmp_path / "trainData.json"
        TrainDataStore(path).save(PersistedState(train_data=td))

        result = runner.invoke(app, ["reset-smart-train", str(path)])
        assert result.exit_code == 0
        assert "Cleared 2" in result.output
        loaded = TrainDataStore(path).load().train_data
        assert loaded.use_user_gesture == {}
        assert loaded.use_predefined_user_gesture == {}
