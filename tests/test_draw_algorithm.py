"""
Tests for the seeded e-draw
"""
import hashlib
from collections import Counter

import pytest

from lams.workflow import draw

SEED = "ab" * 32
NONCE = "0011223344556677"


class TestDrawAlgorithm:

    def test_same_seed_same_permutation(self):
        first = draw.run_draw(SEED, NONCE, [5, 3, 9, 1, 7], 2)
        second = draw.run_draw(SEED, NONCE, [1, 3, 5, 7, 9], 2)
        assert first.permutation == second.permutation
        assert first.audit_hash == second.audit_hash
        assert first.application_ids == [1, 3, 5, 7, 9]

    def test_permutation_covers_every_input_once(self):
        ids = list(range(1, 51))
        result = draw.run_draw(SEED, NONCE, ids, 10)
        assert sorted(result.permutation) == ids

    def test_selected_are_prefix_with_sequence_numbers(self):
        result = draw.run_draw(SEED, NONCE, [10, 20, 30, 40], 3)
        assert result.selected == [(app_id, i + 1) for i, app_id in enumerate(result.permutation[:3])]

    def test_different_seed_changes_result(self):
        ids = list(range(1, 21))
        a = draw.run_draw(SEED, NONCE, ids, 5)
        b = draw.run_draw("cd" * 32, NONCE, ids, 5)
        assert a.permutation != b.permutation

    def test_input_digest_is_over_canonical_order(self):
        assert draw.input_digest([1, 2, 3]) == draw.run_draw(SEED, NONCE, [3, 2, 1], 1).input_digest

    def test_duplicate_ids_are_rejected(self):
        with pytest.raises(ValueError):
            draw.canonical_input([1, 2, 2])

    @pytest.mark.parametrize("k", [0, 4, True])
    def test_selected_count_out_of_range(self, k):
        with pytest.raises(ValueError):
            draw.run_draw(SEED, NONCE, [1, 2, 3], k)

    def test_stream_below_stays_in_range(self):
        stream = draw.DrawStream(SEED, NONCE)
        values = [stream.below(7) for _ in range(500)]
        assert set(values) == set(range(7))

    def test_new_seed_is_32_random_bytes(self):
        seed = draw.new_seed()
        assert len(bytes.fromhex(seed)) == 32
        assert seed != draw.new_seed()


@pytest.mark.slow
class TestDrawDistribution:
    """Fixed seeds, so the counts are deterministic"""

    RUNS = 6000
    IDS = [1, 2, 3, 4]

    def _permutations(self):
        for i in range(self.RUNS):
            seed = hashlib.sha256(f"seed-{i}".encode()).hexdigest()
            yield tuple(draw.shuffle(self.IDS, seed, NONCE))

    def test_each_position_is_uniform(self):
        positions = [Counter() for _ in self.IDS]
        for permutation in self._permutations():
            for position, app_id in enumerate(permutation):
                positions[position][app_id] += 1

        expected = self.RUNS / len(self.IDS)
        for counts in positions:
            assert set(counts) == set(self.IDS)
            for app_id in self.IDS:
                assert abs(counts[app_id] - expected) < expected * 0.15, (app_id, counts)

    def test_every_ordering_occurs(self):
        orderings = Counter(self._permutations())
        expected = self.RUNS / 24
        assert len(orderings) == 24
        assert all(abs(n - expected) < expected * 0.4 for n in orderings.values()), orderings
