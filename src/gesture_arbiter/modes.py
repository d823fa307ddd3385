"""Operating modes, security levels and recognition thresholds."""

from __future__ import annotations

from enum import IntEnum, IntFlag


class Mode(IntFlag):
    """Bitmask of behaviours applied to each incoming gesture.

    Bits are independent; one sample may fire several operations.
    """
    NONE = 0x00
    IDENTIFY_PLAYER_SIGNATURE = 0x02
    DEVELOPER_DEFINED = 0x08
    TRAIN_PLAYER_SIGNATURE = 0x10
    ADD_PLAYER_GESTURE = 0x40
    IDENTIFY_PLAYER_GESTURE = 0x80
    SMART_TRAIN_DEVELOPER_DEFINED = 0x100
    SMART_IDENTIFY_DEVELOPER_DEFINED = 0x200


# Order in which the dispatcher fires the bits of a mode.
DISPATCH_ORDER = (
    Mode.IDENTIFY_PLAYER_SIGNATURE,
    Mode.TRAIN_PLAYER_SIGNATURE,
    Mode.ADD_PLAYER_GESTURE,
    Mode.IDENTIFY_PLAYER_GESTURE,
    Mode.DEVELOPER_DEFINED,
    Mode.SMART_IDENTIFY_DEVELOPER_DEFINED,
    Mode.SMART_TRAIN_DEVELOPER_DEFINED,
)


class SecurityLevel(IntEnum):
    """Strength rating reported when a signature finishes training."""
    NONE = 0
    VERY_POOR = 1
    POOR = 2
    NORMAL = 3
    HIGH = 4
    VERY_HIGH = 5


# Samples per gesture record: timestamp, angular velocity xyz, 6 auxiliary.
ENTRY_LENGTH = 10

# Entry counts below this are accidental taps (0.5s at ~60 entries/s).
COMMON_MISTOUCH_THRESHOLD = 30
TRAIN_DATA_THRESHOLD_RATIO = 0.65
MAX_TRAIN_FAIL_COUNT = 3
ROLLBACK_PROGRESS = 0.5
FIRST_STEP_PROGRESS = 0.2

COMMON_PASS_SCORE = 1.0
SMART_TRAIN_PASS_THRESHOLD = 0.8
SMART_TRAIN_MIN_CANDIDATES = 3

RECENT_CACHE_SIZE = 10
DEFAULT_USER_GESTURE_TARGET = 101
