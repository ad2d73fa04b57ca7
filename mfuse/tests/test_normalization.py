"""
Unit tests for the vector math helpers.

Tests:
- L2 normalization, including the zero vector
- Weight renormalization and its error cases
- Weighted concatenation across unrelated dimensions
"""

import numpy as np
import pytest

from mfuse.exceptions import FusionInputError, InvalidWeightsError
from mfuse.tests.fakes import unit_vector
from mfuse.utils.normalization import (
    average_vectors,
    combine_vectors,
    normalize_l2,
    normalize_weights,
)


class TestNormalizeL2:

    def test_pythagorean_triple(self):
        assert normalize_l2([3, 4, 0]) == pytest.approx([0.6, 0.8, 0.0])

    @pytest.mark.parametrize("vector", [
        [1e-9, 2e-9],
        [1000.0, -2000.0, 3.5],
        list(np.random.default_rng(7).normal(size=300)),
    ])
    def test_non_zero_vectors_have_unit_norm(self, vector):
        assert np.linalg.norm(normalize_l2(vector)) == pytest.approx(1.0, abs=1e-5)

    def test_zero_vector_is_returned_unchanged(self):
        assert normalize_l2([0.0, 0.0, 0.0]) == [0.0, 0.0, 0.0]

    def test_returns_plain_floats(self):
        result = normalize_l2(np.array([1, 1], dtype=np.float32))
        assert all(type(value) is float for value in result)


class TestNormalizeWeights:

    @pytest.mark.parametrize("weights", [[0.6, 0.4], [0.6], [2, 3, 5], [0.0, 0.25]])
    def test_sums_to_one(self, weights):
        assert sum(normalize_weights(weights)) == pytest.approx(1.0)

    def test_preserves_ratios(self):
        assert normalize_weights([1, 3]) == pytest.approx([0.25, 0.75])

    @pytest.mark.parametrize("weights", [[], [0.0, 0.0], [0.5, -0.1]])
    def test_rejects_unusable_weights(self, weights):
        with pytest.raises(InvalidWeightsError):
            normalize_weights(weights)


class TestCombineVectors:

    def test_text_and_visual_concatenation(self):
        text, visual = unit_vector(384, seed=1), unit_vector(512, seed=2)

        combined = combine_vectors([text, visual], [0.6, 0.4])

        assert len(combined) == 896
        assert np.linalg.norm(normalize_l2(combined)) == pytest.approx(1.0, abs=1e-5)

    def test_segments_are_scaled_in_input_order(self):
        combined = combine_vectors([[1.0, 1.0], [1.0]], [3.0, 1.0])
        assert combined == pytest.approx([0.75, 0.75, 0.25])

    def test_single_vector_keeps_full_weight(self):
        assert combine_vectors([[0.5, 0.5]], [0.4]) == pytest.approx([0.5, 0.5])

    def test_length_mismatch(self):
        with pytest.raises(FusionInputError):
            combine_vectors([[1.0], [2.0]], [1.0])

    def test_empty_input(self):
        with pytest.raises(FusionInputError):
            combine_vectors([], [])

    def test_zero_weights_raise_invalid_weights(self):
        with pytest.raises(InvalidWeightsError):
            combine_vectors([[1.0], [2.0]], [0.0, 0.0])


def test_average_vectors():
    assert average_vectors([[1.0, 3.0], [3.0, 5.0]]) == pytest.approx([2.0, 4.0])
    with pytest.raises(FusionInputError):
        average_vectors([[1.0], [1.0, 2.0]])
