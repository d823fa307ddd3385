"""GestureArbiter - arbitration between common and player-trained motion gesture recognition."""

__version__ = "0.1.0"

from gesture_arbiter.modes import Mode, SecurityLevel
from gesture_arbiter.errors import EngineError, ErrorKind, InvalidSampleError, ConfigError
from gesture_arbiter.samples import GestureSample
from gesture_arbiter.recognizer import (
    Recognizer,
    InlineExecutor,
    TrainResult,
    SignatureResult,
    PredefinedResult,
    CustomResult,
)
from gesture_arbiter.engine import GestureArbiterEngine
from gesture_arbiter.config import EngineConfig, load_config, save_config
from gesture_arbiter.reference import TemplateRecognizer
from gesture_arbiter.capture import MotionCapture
from gesture_arbiter.recorder import SampleRecorder, SamplePlayer
from gesture_arbiter.metrics import MetricsCollector
