"""Tests for motion samples, payload packing and gesture ids."""

import numpy as np
import pytest

from gesture_arbiter.errors import InvalidSampleError
from gesture_arbiter.samples import GestureIdClock, GestureSample, flatten_samples, split_payload

from conftest import make_sample


class TestGestureSample:
    def test_flat_input_is_reshaped(self):
        sample = GestureSample(list(range(30)))
        assert sample.entry_count == 3
        assert sample.data.shape == (3, 10)
        assert sample.data[1, 0] == 10.0

    def test_flat_input_must_be_whole_records(self):
        with pytest.raises(InvalidSampleError):
            GestureSample(list(range(25)))

    def test_wrong_record_width(self):
        with pytest.raises(InvalidSampleError):
            GestureSample(np.zeros((4, 7)))

    def test_three_dimensional_rejected(self):
        with pytest.raises(InvalidSampleError):
            GestureSample(np.zeros((2, 3, 10)))

    def test_empty_sample(self):
        sample = GestureSample([])
        assert sample.entry_count == 0
        assert len(sample) == 0
        assert sample.data.shape == (0, 10)

    def test_read_only(self):
        sample = make_sample(5)
        with pytest.raises(ValueError):
            sample.data[0, 0] = 1.0

    def test_source_array_is_copied(self):
        raw = np.zeros((3, 10), dtype=np.float32)
        sample = GestureSample(raw)
        raw[0, 0] = 99.0
        assert sample.data[0, 0] == 0.0

    def test_angular_velocity_columns(self):
        sample = GestureSample(np.arange(20, dtype=np.float32).reshape(2, 10))
        assert sample.angular_velocity.tolist() == [[1, 2, 3], [11, 12, 13]]

    def test_coerce_passthrough(self):
        sample = make_sample(3)
        assert GestureSample.coerce(sample) is sample
        assert GestureSample.coerce(None) is None
        assert GestureSample.coerce(np.zeros(10)).entry_count == 1

    def test_repr(self):
        assert repr(make_sample(7)) == "GestureSample(entries=7)"


class TestPayload:
    def test_flatten_and_split(self):
        samples = [make_sample(4, seed=1), make_sample(6, seed=2)]
        payload, counts = flatten_samples(samples)
        assert payload.dtype == np.float32
        assert payload.shape == (100,)
        assert counts == [4, 6]

        restored = split_payload(payload, counts)
        assert [s.entry_count for s in restored] == [4, 6]
        np.testing.assert_array_equal(restored[1].data, samples[1].data)

    def test_flatten_empty(self):
        payload, counts = flatten_samples([])
        assert payload.size == 0
        assert counts == []


class TestGestureIdClock:
    def test_ids_strictly_increase(self):
        clock = GestureIdClock()
        ids = [clock.next_id() for _ in range(200)]
        assert ids == sorted(set(ids))
        assert ids[0] >= 0
