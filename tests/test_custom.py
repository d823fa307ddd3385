"""Tests for the similarity-gated custom trainer and player gesture cache."""

from gesture_arbiter.custom import CustomGestureTrainer, PlayerGestureCache

from conftest import FakeRecognizer, make_sample


class TestCustomGestureTrainer:
    def test_first_sample_always_accepted(self):
        recognizer = FakeRecognizer()
        recognizer.similar = False
        trainer = CustomGestureTrainer(recognizer)
        assert trainer.add(make_sample(10))
        assert len(trainer) == 1
        assert "is_similar" not in recognizer.call_names()

    def test_dissimilar_sample_rejected(self):
        recognizer = FakeRecognizer()
        trainer = CustomGestureTrainer(recognizer)
        trainer.add(make_sample(10, seed=1))
        recognizer.similar = False
        assert not trainer.add(make_sample(10, seed=2))
        assert len(trainer) == 1

    def test_similar_to_any_prior_sample_is_enough(self):
        recognizer = FakeRecognizer()
        trainer = CustomGestureTrainer(recognizer)
        a, b, c = make_sample(10, seed=1), make_sample(12, seed=2), make_sample(14, seed=3)
        trainer.add(a)
        trainer.add(b)

        # only similar to the second sample in the batch
        recognizer.similar = lambda prior, new: prior is b
        assert trainer.add(c)
        assert trainer.batch == [a, b, c]

    def test_commit_flattens_batch(self):
        recognizer = FakeRecognizer()
        trainer = CustomGestureTrainer(recognizer)
        trainer.add(make_sample(10))
        trainer.add(make_sample(15))

        assert trainer.commit("circle") == 2
        payload, counts = recognizer.custom_gestures["circle"]
        assert counts == [10, 15]
        assert payload.shape == (250,)
        assert len(trainer) == 0

    def test_commit_empty_batch(self):
        recognizer = FakeRecognizer()
        trainer = CustomGestureTrainer(recognizer)
        assert trainer.commit("circle") == 0
        assert recognizer.custom_gestures == {}


class TestPlayerGestureCache:
    def test_add_counts_per_target(self):
        cache = PlayerGestureCache(FakeRecognizer())
        assert cache.add(make_sample(5), [1, 2]) == {1: 1, 2: 1}
        assert cache.add(make_sample(5), [1]) == {1: 2}
        assert cache.count(1) == 2
        assert cache.count(3) == 0

    def test_set_player_gesture_commits_and_clears(self):
        recognizer = FakeRecognizer()
        cache = PlayerGestureCache(recognizer)
        cache.add(make_sample(5), [1])
        cache.add(make_sample(6), [1])

        assert cache.set_player_gesture([1, 2]) == {1: 2}
        assert recognizer.custom_gestures[1][1] == [5, 6]
        assert 2 not in recognizer.custom_gestures
        assert cache.count(1) == 0

    def test_set_player_gesture_without_clear(self):
        cache = PlayerGestureCache(FakeRecognizer())
        cache.add(make_sample(5), [4])
        cache.set_player_gesture([4], clear_on_set=False)
        assert cache.count(4) == 1
