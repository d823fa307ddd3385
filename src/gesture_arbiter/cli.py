"""GestureArbiter CLI.

Usage:
    gesture-arbiter info               — Show persisted TrainData counters
    gesture-arbiter replay             — Replay a recorded session through the engine
    gesture-arbiter reset-smart-train  — Forget user-preferred targets
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import typer

from gesture_arbiter.config import EngineConfig, load_config
from gesture_arbiter.errors import ConfigError
from gesture_arbiter.events import EVENT_NAMES
from gesture_arbiter.modes import Mode
from gesture_arbiter.train_data import TrainDataStore

app = typer.Typer(
    name="gesture-arbiter",
    help="Arbitrates between common and player-trained motion gesture recognition.",
    add_completion=False,
)


def _setup_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _load(config_path: Optional[str], data: Optional[str]) -> EngineConfig:
    try:
        config = load_config(config_path) if config_path else EngineConfig()
    except ConfigError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(1)
    if data:
        config.data_path = data
    return config


def _parse_mode(text: str) -> Mode:
    mode = Mode.NONE
    for part in text.split("|"):
        part = part.strip().upper().replace("-", "_")
        if not part:
            continue
        try:
            mode |= Mode[part]
        except KeyError:
            names = ", ".join(m.name.lower() for m in Mode if m is not Mode.NONE)
            raise typer.BadParameter(f"unknown mode '{part.lower()}' (choose from {names})")
    return mode


def _split(text: Optional[str]) -> list[str]:
    return [t.strip() for t in (text or "").split(",") if t.strip()]


@app.command()
def info(
    data: str = typer.Argument(..., help="Path to the persisted train data JSON"),
):
    """Show TrainData counters and stats scopes."""
    store = TrainDataStore(data)
    if not store.exists():
        typer.echo(f"❌ No train data at {data}", err=True)
        raise typer.Exit(1)

    state = store.load()
    td = state.train_data
    summary = td.summary()
    typer.echo(f"📊 Train data: {data}")
    typer.echo(f"   User matches:    {summary['user']}")
    typer.echo(f"   Common matches:  {summary['common']}")
    typer.echo(f"   Failed:          {summary['failed']}")
    if td.train_progress:
        typer.echo("\n✍️  Signature progress:")
        for target, progress in sorted(td.train_progress.items()):
            typer.echo(f"   {target:>5}  {progress:.0%}")
    preferred = [str(t) for t, on in td.use_user_gesture.items() if on]
    preferred += [t for t, on in td.use_predefined_user_gesture.items() if on]
    if preferred:
        typer.echo(f"\n🧑 User-preferred targets: {', '.join(preferred)}")
    for path in state.stats.paths():
        scope = state.stats.find(path)
        typer.echo(f"\n📈 Stats {path} (populated: {scope.populated})")
        for label in scope.labels():
            s = scope.get(label)
            typer.echo(
                f"   {label:15s} commonErr={s.common_error_count} userErr={s.user_error_count} "
                f"commonConf={s.common_confidence:.2f} userConf={s.user_confidence:.2f}"
            )


@app.command()
def replay(
    session: str = typer.Argument(..., help="Recorded session (.json or .npz)"),
    mode: str = typer.Option("developer_defined", help="Mode names joined by '|'"),
    targets: Optional[str] = typer.Option(None, help="Comma-separated player target indices"),
    predefined: Optional[str] = typer.Option(None, help="Comma-separated predefined labels"),
    classifier: str = typer.Option("default", help="Classifier name"),
    sub_classifier: str = typer.Option("", help="Sub-classifier name"),
    templates: Optional[str] = typer.Option(None, help="Labelled recording used as predefined templates"),
    config: Optional[str] = typer.Option(None, help="Engine YAML config"),
    data: Optional[str] = typer.Option(None, help="Train data JSON to load and save"),
    show_metrics: bool = typer.Option(False, "--metrics", help="Print Prometheus metrics afterwards"),
    log_level: str = typer.Option("warning", help="Log level"),
):
    """Replay a recorded session through the engine with the reference recognizer."""
    from gesture_arbiter.engine import GestureArbiterEngine
    from gesture_arbiter.recognizer import InlineExecutor
    from gesture_arbiter.recorder import SamplePlayer
    from gesture_arbiter.reference import TemplateRecognizer

    _setup_logging(log_level)
    engine_config = _load(config, data)
    run_mode = _parse_mode(mode)

    if not Path(session).exists():
        typer.echo(f"❌ Session not found: {session}", err=True)
        raise typer.Exit(1)

    recognizer = TemplateRecognizer()
    labels = _split(predefined)
    if templates:
        tmpl = SamplePlayer.load(templates)
        by_label: dict[str, list] = {}
        for rec in tmpl.play():
            if rec.label:
                by_label.setdefault(rec.label, []).append(rec.to_sample())
        for label, samples in by_label.items():
            recognizer.register_predefined(classifier, sub_classifier, label, samples)
        typer.echo(f"📦 Loaded {len(by_label)} templates from {templates}")
        if not labels:
            labels = sorted(by_label)

    engine = GestureArbiterEngine(recognizer, config=engine_config, executor=InlineExecutor())
    for name in EVENT_NAMES:
        engine.on(name, lambda evt, name=name: typer.echo(f"   {name}: {evt}"))

    engine.set_classifier(classifier, sub_classifier)
    engine.set_developer_defined_target(labels)
    engine.set_target([int(t) for t in _split(targets)])
    engine.set_mode(run_mode)

    player = SamplePlayer.load(session)
    typer.echo(f"▶️  Replaying {player.sample_count} gestures in mode {run_mode!r}")
    for rec in player.play():
        engine.on_sample_recorded(rec.to_sample())

    engine.set_mode(Mode.NONE)
    engine.close()

    if show_metrics:
        typer.echo("")
        typer.echo(engine.metrics.render())


@app.command("reset-smart-train")
def reset_smart_train(
    data: str = typer.Argument(..., help="Path to the persisted train data JSON"),
):
    """Clear every user-preferred flag set by smart training."""
    store = TrainDataStore(data)
    state = store.load()
    cleared = len(state.train_data.use_user_gesture) + len(state.train_data.use_predefined_user_gesture)
    state.train_data.use_user_gesture.clear()
    state.train_data.use_predefined_user_gesture.clear()
    store.save(state)
    typer.echo(f"🧹 Cleared {cleared} user-preferred targets in {data}")


def main():
    app()


if __name__ == "__main__":
    main()
