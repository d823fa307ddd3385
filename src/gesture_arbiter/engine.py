"""Mode/target dispatcher and public API of the arbitration engine.

One engine instance owns every cache, counter and statistic. Raw samples
come in, the current mode bitmask decides which operations run, each
operation makes one round trip to the recognizer on the engine's
executor, and the continuation raises a completion event.

Usage:
    engine = GestureArbiterEngine(recognizer, config=load_config("engine.yml"))
    engine.set_classifier("demo", "")
    engine.set_developer_defined_target(["circle", "heart"])
    engine.set_mode(Mode.SMART_IDENTIFY_DEVELOPER_DEFINED)

    @engine.handler(SMART_IDENTIFY_MATCHED)
    def on_match(evt):
        print(evt.gesture, evt.source)

    engine.on_sample_recorded(sample)
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Iterable, Optional

from gesture_arbiter.arbitration import Arbiter, SOURCE_BOTH, SOURCE_COMMON, SOURCE_USER
from gesture_arbiter.cache import RecentGestureCache
from gesture_arbiter.config import EngineConfig
from gesture_arbiter.custom import CustomGestureTrainer, PlayerGestureCache
from gesture_arbiter.errors import EngineError
from gesture_arbiter.events import (
    CUSTOM_GESTURE_ADDED,
    CUSTOM_GESTURE_MATCHED,
    DRAW_STARTED,
    GESTURE_TRIGGERED,
    PREDEFINED_MATCHED,
    SIGNATURE_MATCHED,
    SIGNATURE_TRAINED,
    SMART_IDENTIFY_MATCHED,
    CustomGestureAddedEvent,
    CustomGestureMatchedEvent,
    DrawStartedEvent,
    EventHub,
    GestureTriggeredEvent,
    PredefinedMatchedEvent,
    SignatureMatchedEvent,
    SignatureTrainedEvent,
    SmartIdentifyMatchedEvent,
)
from gesture_arbiter.modes import DISPATCH_ORDER, Mode
from gesture_arbiter.metrics import MetricsCollector
from gesture_arbiter.recognizer import (
    CustomResult,
    PredefinedResult,
    Recognizer,
    SignatureResult,
    Target,
)
from gesture_arbiter.samples import GestureIdClock, GestureSample
from gesture_arbiter.smart_train import SmartTrainSelector
from gesture_arbiter.stats import StatScope, classifier_path
from gesture_arbiter.train_data import PersistedState, TrainDataStore
from gesture_arbiter.training import TrainingCoordinator

logger = logging.getLogger("gesture_arbiter.engine")

_STOP = object()


@dataclass
class IdentifyBundle:
    """One signature or custom-gesture identification round trip."""
    gesture_id: int
    based_index: int
    sample: GestureSample
    match_index: int = -1
    confidence: float = 0.0


@dataclass
class IdentifyPredefinedBundle:
    """One predefined-gesture identification round trip."""
    gesture_id: int
    based_gesture: str
    sample: GestureSample
    labels: tuple[str, ...] = ()
    match_gesture: str = ""
    score: float = 0.0
    confidence: float = 0.0


class GestureArbiterEngine:
    """Routes gestures to recognition, training and arbitration.

    All mutable state is guarded by one re-entrant lock. Recognizer round
    trips run on `executor` (a single-worker thread pool by default, so
    continuations are delivered one at a time); pass an
    `InlineExecutor` for synchronous, deterministic operation.
    """

    def __init__(
        self,
        recognizer: Recognizer,
        config: Optional[EngineConfig] = None,
        executor: Optional[Executor] = None,
        store: Optional[TrainDataStore] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.config = config or EngineConfig()
        if self.config.debug_log:
            logging.getLogger("gesture_arbiter").setLevel(logging.DEBUG)

        self.recognizer = recognizer
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="gesture-arbiter"
        )
        self._lock = threading.RLock()
        self._events = EventHub()
        self.metrics = metrics or MetricsCollector()
        self._clock = GestureIdClock()
        self.cache = RecentGestureCache(self.config.recent_cache_size)

        if store is None and self.config.data_path:
            store = TrainDataStore(self.config.data_path)
        self._store = store
        state = store.load() if store is not None else PersistedState()
        self.train_data = state.train_data
        self.stats = state.stats

        self.custom_trainer = CustomGestureTrainer(recognizer)
        self.player_gestures = PlayerGestureCache(recognizer)
        self.smart_train = SmartTrainSelector(
            self.custom_trainer,
            self.train_data,
            pass_threshold=self.config.smart_train_pass_threshold,
            min_candidates=self.config.smart_train_min_candidates,
        )
        self.smart_train.snapshots.update(state.smart_train_snapshots)
        self.training = TrainingCoordinator(
            recognizer,
            self.train_data,
            self._emit_trained,
            mistouch_threshold=self.config.mistouch_threshold,
            size_ratio=self.config.train_size_ratio,
            max_fail_count=self.config.max_train_fail_count,
        )
        self.arbiter = Arbiter(pass_score=self.config.common_pass_score)

        self._mode = Mode.NONE
        self._targets: list[int] = []
        self._predefined: list[str] = []
        self._classifier: Optional[str] = None
        self._sub_classifier: Optional[str] = None

        self._handlers: dict[Mode, Callable[[int, GestureSample, list[int]], None]] = {
            Mode.IDENTIFY_PLAYER_SIGNATURE: self._identify_player_signature,
            Mode.TRAIN_PLAYER_SIGNATURE: self._train_player_signature,
            Mode.ADD_PLAYER_GESTURE: self._add_player_gesture,
            Mode.IDENTIFY_PLAYER_GESTURE: self._identify_player_gesture,
            Mode.DEVELOPER_DEFINED: self._identify_predefined,
            Mode.SMART_IDENTIFY_DEVELOPER_DEFINED: self._smart_identify_predefined,
            Mode.SMART_TRAIN_DEVELOPER_DEFINED: self._smart_train_predefined,
        }

        self._inbox: queue.Queue = queue.Queue()
        self._worker: Optional[threading.Thread] = None

    # --- events ---

    def on(self, name: str, callback: Callable[[Any], None]):
        """Register a listener for a named completion event."""
        self._events.on(name, callback)

    def off(self, name: str, callback: Callable[[Any], None]):
        self._events.off(name, callback)

    def handler(self, name: str):
        """Decorator to register a listener for a named event."""
        return self._events.handler(name)

    def _emit(self, name: str, event: Any):
        self.metrics.record_event(name)
        self._events.emit(name, event)

    def _emit_trained(self, event: SignatureTrainedEvent):
        if event.error is not None:
            self.metrics.record_training(event.error.kind.value)
        elif event.progress >= 1.0:
            self.metrics.record_training("completed")
        else:
            self.metrics.record_training("progress")
        self._emit(SIGNATURE_TRAINED, event)

    # --- configuration setters ---

    @property
    def mode(self) -> Mode:
        return self._mode

    @property
    def targets(self) -> list[int]:
        return list(self._targets)

    @property
    def predefined_targets(self) -> list[str]:
        return list(self._predefined)

    @property
    def classifier(self) -> tuple[Optional[str], Optional[str]]:
        return self._classifier, self._sub_classifier

    @property
    def full_classifier_path(self) -> str:
        return classifier_path(self._classifier or "", self._sub_classifier)

    @property
    def is_valid_classifier(self) -> bool:
        return bool(self._classifier) and self._sub_classifier is not None

    @property
    def is_low_secure_signature(self) -> bool:
        return self.training.is_low_secure_signature

    @property
    def train_fail_count(self) -> int:
        return self.training.fail_count

    def set_mode(self, mode: Mode):
        """Set the behaviours applied to the next incoming gesture.

        Leaving smart-train mode commits the buffered candidates of the
        first predefined target before the switch.
        """
        mode = Mode(mode)
        with self._lock:
            if mode == self._mode:
                logger.debug("Mode %r unchanged", mode)
                return
            logger.debug("New mode %r", mode)
            leaving_smart_train = (
                bool(self._mode & Mode.SMART_TRAIN_DEVELOPER_DEFINED)
                and not mode & Mode.SMART_TRAIN_DEVELOPER_DEFINED
            )
            if leaving_smart_train and self._predefined:
                logger.debug("Leaving smart train, committing candidates")
                self._flush_smart_train(self._predefined[0])
            self._mode = mode
            self.training.reset_fail_count()
            self.custom_trainer.clear()

    def set_target(self, targets: Iterable[int]):
        """Set the player target indices for the next incoming gesture."""
        targets = [int(t) for t in targets]
        with self._lock:
            if targets == self._targets:
                logger.debug("Targets unchanged")
                return
            self._targets = targets
            logger.debug("Targets: %s", targets)
            self.training.reset_fail_count()
            self.custom_trainer.clear()

    def set_developer_defined_target(self, labels: Optional[Iterable[str]]):
        """Set the predefined labels to identify.

        In smart-train mode, replacing the labels commits the candidates
        gathered for the previous first label.
        """
        labels = list(labels) if labels is not None else []
        with self._lock:
            if labels == self._predefined:
                return
            previous = self._predefined[0] if self._predefined else None
            self._predefined = labels
            logger.debug("Predefined targets: %s", labels)
            if self._mode & Mode.SMART_TRAIN_DEVELOPER_DEFINED and previous is not None:
                self._flush_smart_train(previous)

    def set_classifier(self, classifier: str, sub_classifier: Optional[str] = ""):
        with self._lock:
            self._classifier = classifier
            self._sub_classifier = sub_classifier

    # --- sample intake ---

    def on_sample_recorded(self, sample) -> Optional[int]:
        """Accept a finished gesture from capture.

        Assigns a gesture id, caches the sample, lets `gesture_triggered`
        listeners veto or remap the operation, then dispatches it.

        Returns:
            The gesture id, or None when the sample was empty.
        """
        sample = GestureSample.coerce(sample)
        if sample is None or sample.entry_count == 0:
            logger.debug("Empty sample ignored")
            return None

        gesture_id = self._clock.next_id()
        logger.debug("Gesture %d received with %d entries", gesture_id, sample.entry_count)
        self.metrics.record_sample()
        self.cache.add(gesture_id, sample)

        with self._lock:
            mode, targets = self._mode, list(self._targets)

        if self._events.has_listeners(GESTURE_TRIGGERED):
            event = GestureTriggeredEvent(gesture_id=gesture_id, mode=mode, targets=targets)
            self._emit(GESTURE_TRIGGERED, event)
            if not event.proceed:
                logger.debug("Gesture %d vetoed by listener", gesture_id)
                return gesture_id
            mode, targets = Mode(event.mode), list(event.targets)

        self.perform_action_with_gesture(mode, targets, gesture_id, sample)
        return gesture_id

    def submit_sample(self, sample):
        """Thread-safe hand-off from a capture worker."""
        self._inbox.put(sample)

    def process_pending(self) -> int:
        """Dispatch every queued sample on the calling thread."""
        processed = 0
        while True:
            try:
                item = self._inbox.get_nowait()
            except queue.Empty:
                return processed
            if item is _STOP:
                continue
            self.on_sample_recorded(item)
            processed += 1

    def start(self):
        """Consume submitted samples on a background thread."""
        if self._worker is not None and self._worker.is_alive():
            return
        self._worker = threading.Thread(target=self._consume, name="gesture-arbiter-inbox", daemon=True)
        self._worker.start()

    def stop(self, timeout: Optional[float] = 2.0):
        if self._worker is None:
            return
        self._inbox.put(_STOP)
        self._worker.join(timeout)
        self._worker = None

    def _consume(self):
        while True:
            item = self._inbox.get()
            if item is _STOP:
                return
            try:
                self.on_sample_recorded(item)
            except Exception as e:
                logger.error("Failed to dispatch sample: %s", e)

    def notify_draw_started(self, started: bool):
        self._emit(DRAW_STARTED, DrawStartedEvent(started=started))

    # --- dispatcher ---

    def perform_action_with_gesture(
        self,
        mode: Mode,
        targets: Iterable[int],
        gesture_id: int,
        sample=None,
    ):
        """Run every operation whose bit is set in mode.

        When sample is omitted it is looked up in the recent-gesture cache.
        Empty or unavailable samples are ignored.
        """
        sample = GestureSample.coerce(sample) if sample is not None else self.cache.get(gesture_id)
        if sample is None or sample.entry_count == 0:
            logger.debug("Sample for gesture %d is not available", gesture_id)
            return

        mode = Mode(mode)
        targets = [int(t) for t in (targets or [])]
        with self._lock:
            for bit in DISPATCH_ORDER:
                if mode & bit:
                    logger.debug("%s for gesture %d", bit.name, gesture_id)
                    self._handlers[bit](gesture_id, sample, targets)

    def _submit(self, job: Callable[[], Any], continuation: Callable[[Any, Any], None], bundle) -> Future:
        start = time.monotonic()
        future = self._executor.submit(job)
        future.add_done_callback(partial(self._complete, continuation, bundle, start))
        return future

    def _complete(self, continuation, bundle, start: float, future: Future):
        self.metrics.record_latency(time.monotonic() - start)
        error = future.exception()
        if error is not None:
            logger.error("Recognizer call for gesture %d failed: %s", bundle.gesture_id, error)
            return
        with self._lock:
            continuation(bundle, future.result())

    def _predefined_ready(self, what: str) -> Optional[EngineError]:
        if not self._predefined:
            logger.warning("%s without predefined targets", what)
            return EngineError.no_targets("no predefined targets")
        if not self.is_valid_classifier:
            logger.warning("%s without classifier", what)
            return EngineError.no_targets("no classifier")
        return None

    # signature identification

    def _identify_player_signature(self, gesture_id: int, sample: GestureSample, targets: list[int]):
        if not targets:
            logger.warning("Identify signature without targets")
            self._emit(SIGNATURE_MATCHED, SignatureMatchedEvent(
                gesture_id, False, 0, error=EngineError.no_targets("no signature targets"),
            ))
            return
        bundle = IdentifyBundle(gesture_id=gesture_id, based_index=targets[0], sample=sample)
        self._submit(
            partial(self.recognizer.identify_signature, sample, list(targets)),
            self._on_signature_result,
            bundle,
        )

    def _on_signature_result(self, bundle: IdentifyBundle, result: SignatureResult):
        if result.error_code != 0 or result.match is None:
            logger.debug("Identify signature failed: code %d", result.error_code)
            bundle.match_index = -1
            self.train_data.inc_failed_gesture_count(bundle.based_index)
            error = EngineError.recognizer(result.error_code) if result.error_code else None
            self._emit(SIGNATURE_MATCHED, SignatureMatchedEvent(bundle.gesture_id, False, 0, error=error))
            return
        bundle.match_index = result.match
        logger.debug("Identify signature pass: %d", result.match)
        self.train_data.inc_user_gesture_count(result.match)
        self._emit(SIGNATURE_MATCHED, SignatureMatchedEvent(bundle.gesture_id, True, result.match))

    def identify_user_gesture(self, sample, targets: Optional[Iterable[int]] = None):
        """Check a sample against the player's signature target."""
        sample = GestureSample.coerce(sample)
        if sample is None or sample.entry_count == 0:
            return
        targets = list(targets) if targets is not None else [self.config.default_user_target]
        with self._lock:
            self._identify_player_signature(0, sample, targets)

    # signature training

    def _train_player_signature(self, gesture_id: int, sample: GestureSample, targets: list[int]):
        if not targets:
            logger.warning("Train signature without target")
            self._emit_trained(SignatureTrainedEvent(
                gesture_id, -1, 0.0, error=EngineError.no_targets("no training target"),
            ))
            return
        target = targets[0]
        bundle = self.training.begin(gesture_id, target, sample)
        self._submit(
            partial(self.recognizer.train, target, sample),
            self.training.on_result,
            bundle,
        )

    def delete_player_record(self, target_index: int) -> bool:
        """Delete a trained signature or player gesture."""
        with self._lock:
            self.train_data.train_progress.pop(target_index, None)
            self.training.first_sample_sizes.pop(target_index, None)
            return self.recognizer.delete_target(target_index)

    # player gestures

    def _add_player_gesture(self, gesture_id: int, sample: GestureSample, targets: list[int]):
        counts = self.player_gestures.add(sample, targets)
        self._emit(CUSTOM_GESTURE_ADDED, CustomGestureAddedEvent(gesture_id, counts))

    def set_player_gesture(self, targets: Iterable[int], clear_on_set: bool = True) -> dict[int, int]:
        """Commit cached player gestures to the recognizer."""
        with self._lock:
            return self.player_gestures.set_player_gesture(list(targets), clear_on_set)

    def _identify_player_gesture(self, gesture_id: int, sample: GestureSample, targets: list[int]):
        if not targets:
            logger.warning("Identify player gesture without targets")
            self._emit(CUSTOM_GESTURE_MATCHED, CustomGestureMatchedEvent(
                gesture_id, -1, error=EngineError.no_targets("no player gesture targets"),
            ))
            return
        bundle = IdentifyBundle(gesture_id=gesture_id, based_index=targets[0], sample=sample)
        self._submit(
            partial(self.recognizer.identify_custom, sample, list(targets)),
            self._on_custom_result,
            bundle,
        )

    def _on_custom_result(self, bundle: IdentifyBundle, result: CustomResult):
        match = -1
        if result.best_match is not None:
            try:
                match = int(result.best_match)
            except (TypeError, ValueError):
                logger.warning("Non-integer player gesture match %r", result.best_match)
        bundle.match_index = match
        bundle.confidence = result.confidence
        logger.debug("Identify player gesture match: %d, conf: %.3f", match, result.confidence)
        self._emit(CUSTOM_GESTURE_MATCHED, CustomGestureMatchedEvent(
            bundle.gesture_id, match, result.confidence,
        ))

    def add_custom_sample(self, sample) -> bool:
        """Offer a sample to the similarity-gated custom gesture batch."""
        sample = GestureSample.coerce(sample)
        if sample is None or sample.entry_count == 0:
            return False
        with self._lock:
            return self.custom_trainer.add(sample)

    def commit_custom_gesture(self, target: Target) -> int:
        """Index the custom gesture batch under target."""
        with self._lock:
            return self.custom_trainer.commit(target)

    def is_player_gesture_existed(self, sample) -> bool:
        return self.recognizer.is_custom_gesture_existed(GestureSample.coerce(sample))

    def is_two_gesture_similar(self, first, second) -> bool:
        return self.recognizer.is_similar(GestureSample.coerce(first), GestureSample.coerce(second))

    # predefined identification

    def _identify_predefined(self, gesture_id: int, sample: GestureSample, targets: list[int]):
        error = self._predefined_ready("Identify predefined")
        if error is not None:
            self._emit(PREDEFINED_MATCHED, PredefinedMatchedEvent(gesture_id, "", 0.0, error=error))
            return
        labels = tuple(self._predefined)
        bundle = IdentifyPredefinedBundle(gesture_id=gesture_id, based_gesture="", sample=sample, labels=labels)
        self._submit(
            partial(self.recognizer.identify_predefined,
                    self._classifier, self._sub_classifier or "", list(labels), sample),
            self._on_predefined_result,
            bundle,
        )

    def _fill_predefined(self, bundle: IdentifyPredefinedBundle, result: PredefinedResult):
        bundle.match_gesture = result.gesture
        bundle.score = result.score
        bundle.confidence = result.confidence
        logger.debug(
            "Predefined match: %s, score: %.3f, conf: %.3f",
            result.gesture, result.score, result.confidence,
        )

    def _emit_predefined(self, bundle: IdentifyPredefinedBundle):
        self._emit(PREDEFINED_MATCHED, PredefinedMatchedEvent(
            bundle.gesture_id, bundle.match_gesture, bundle.score, bundle.confidence,
        ))

    def _on_predefined_result(self, bundle: IdentifyPredefinedBundle, result: PredefinedResult):
        self._fill_predefined(bundle, result)
        self._emit_predefined(bundle)

    # smart identify

    def _smart_identify_predefined(self, gesture_id: int, sample: GestureSample, targets: list[int]):
        error = self._predefined_ready("Smart identify")
        if error is not None:
            self._emit(SMART_IDENTIFY_MATCHED, SmartIdentifyMatchedEvent(gesture_id, "", error=error))
            return
        labels = tuple(self._predefined)
        bundle = IdentifyPredefinedBundle(gesture_id=gesture_id, based_gesture="", sample=sample, labels=labels)
        self._submit(
            partial(self.recognizer.identify_predefined,
                    self._classifier, self._sub_classifier or "", list(labels), sample),
            self._on_smart_identify_result,
            bundle,
        )

    def _on_smart_identify_result(self, bundle: IdentifyPredefinedBundle, result: PredefinedResult):
        self._fill_predefined(bundle, result)
        scope = self.stats.find(self.full_classifier_path) if self.is_valid_classifier else None
        decision = self.arbiter.decide(
            result,
            scope,
            list(bundle.labels),
            lambda labels: self.recognizer.identify_custom(bundle.sample, list(labels)),
        )

        if decision.source in (SOURCE_COMMON, SOURCE_BOTH):
            self.train_data.inc_common_gesture_count(decision.gesture)
        elif decision.source == SOURCE_USER:
            self.train_data.inc_user_gesture_count(decision.gesture)
        else:
            self.train_data.inc_failed_gesture_count(self.full_classifier_path)
        self.metrics.record_decision(decision.source or "none")
        logger.debug("Smart identify %d -> %r via %s", bundle.gesture_id, decision.gesture, decision.source)

        self._emit(SMART_IDENTIFY_MATCHED, SmartIdentifyMatchedEvent(
            bundle.gesture_id, decision.gesture, decision.source,
        ))

    # smart train

    def _smart_train_predefined(self, gesture_id: int, sample: GestureSample, targets: list[int]):
        error = self._predefined_ready("Smart train")
        if error is not None:
            self._emit(PREDEFINED_MATCHED, PredefinedMatchedEvent(gesture_id, "", 0.0, error=error))
            return
        target = self._predefined[0]
        bundle = IdentifyPredefinedBundle(
            gesture_id=gesture_id, based_gesture=target, sample=sample, labels=(target,),
        )
        self._submit(
            partial(self.recognizer.identify_predefined,
                    self._classifier, self._sub_classifier or "", [target], sample),
            self._on_smart_train_result,
            bundle,
        )

    def _on_smart_train_result(self, bundle: IdentifyPredefinedBundle, result: PredefinedResult):
        self._fill_predefined(bundle, result)
        current = self._predefined[0] if self._predefined else None
        if not self._mode & Mode.SMART_TRAIN_DEVELOPER_DEFINED or bundle.based_gesture != current:
            logger.debug(
                "Dropping smart train result for %r, current target is %r",
                bundle.based_gesture, current,
            )
        elif self.smart_train.offer(bundle.score, bundle.sample):
            logger.debug("Smart train candidate from gesture %d, score %.3f", bundle.gesture_id, bundle.score)
        self._emit_predefined(bundle)

    def _flush_smart_train(self, target: Target):
        self.smart_train.flush(target)
        self.custom_trainer.clear()

    def reset_smart_train(self):
        """Forget which targets prefer the user-trained recognizer."""
        with self._lock:
            self.train_data.use_user_gesture.clear()
            self.train_data.use_predefined_user_gesture.clear()

    # stats

    def refresh_stats(self, force: bool = False) -> Future:
        """Re-validate retained smart-train samples against both recognizers.

        Runs on the engine executor. The returned future resolves to the
        refreshed StatScope, or None without a valid classifier.
        """
        return self._executor.submit(self._refresh_stats_job, force)

    def _refresh_stats_job(self, force: bool) -> Optional[StatScope]:
        with self._lock:
            if not self.is_valid_classifier:
                logger.warning("Refresh stats without classifier")
                return None
            path = self.full_classifier_path
            scope = self.stats.scope(path)
            if scope.populated and not force:
                return scope

            scope.reset()
            labels = list(self.train_data.use_predefined_user_gesture)
            for expected, samples in self.smart_train.snapshots.items():
                for sample in samples:
                    self._revalidate(scope, expected, labels, sample)

            scope.populated = True
            logger.info("Stats refreshed for %s (%d labels)", path, len(scope.labels()))
            self._save_locked()
            return scope

    def _revalidate(self, scope: StatScope, expected: str, labels: list[str], sample: GestureSample):
        common = self.recognizer.identify_predefined(
            self._classifier, self._sub_classifier or "", labels, sample,
        )
        if common.gesture:
            stat = scope.ensure(common.gesture)
            if common.gesture != expected:
                stat.add_common_error()
                logger.debug("Tried %s but common matched %s", expected, common.gesture)
            else:
                stat.add_common_confidence(common.confidence)

        if not labels:
            return
        custom = self.recognizer.identify_custom(sample, labels)
        best = str(custom.best_match) if custom.best_match is not None else ""
        if best:
            stat = scope.ensure(best)
            if best != expected:
                stat.add_user_error()
                logger.debug("Tried %s but user matched %s", expected, best)
            else:
                stat.add_user_confidence(custom.confidence)

    def reset_stats(self, current_only: bool = False):
        """Zero every stat scope, or only the current classifier's."""
        with self._lock:
            self.stats.reset(self.full_classifier_path if current_only else None)

    # persistence & lifecycle

    def save(self) -> bool:
        with self._lock:
            return self._save_locked()

    def _save_locked(self) -> bool:
        if self._store is None:
            return False
        self._store.save(PersistedState(
            train_data=self.train_data,
            stats=self.stats,
            smart_train_snapshots=dict(self.smart_train.snapshots),
        ))
        return True

    def close(self):
        """Stop intake, persist state and release the recognizer."""
        self.stop()
        if self._owns_executor:
            self._executor.shutdown(wait=True)
        self.save()
        self.recognizer.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
