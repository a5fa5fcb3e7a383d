import math

import numpy as np
import pytest

from cbow_kernel import (
    LCG_INCREMENT,
    LCG_MULTIPLIER,
    cbow_cpu_parallel,
    cbow_cpu_serial,
    lcg_step,
    window_crop,
    window_positions,
)


def sigmoid(x):
    return 1.0 / (1.0 + math.exp(-x))


def two_word_batch(max_positions=4):
    tokens = np.zeros((1, 1 + max_positions), dtype=np.int32)
    tokens[0, :3] = [2, 0, 1]
    return tokens


def test_lcg_step():
    assert lcg_step(0) == LCG_INCREMENT
    assert lcg_step(1) == LCG_MULTIPLIER + LCG_INCREMENT
    # Wraps at 32 bits
    assert 0 <= lcg_step(0xFFFFFFFF) < 2 ** 32


def test_window_crop_in_range_and_deterministic():
    for seed in range(0, 99999, 997):
        for position in range(8):
            state, crop = window_crop(seed, position, 5)
            assert 0 <= crop < 5
            assert (state, crop) == window_crop(seed, position, 5)


@pytest.mark.parametrize("window", [1, 2, 5])
def test_contributor_count(window):
    length = 40
    for crop in range(window):
        for position in range(length):
            positions = window_positions(position, length, crop, window)
            truncated = sum(
                1 for w in range(crop, 2 * window + 1 - crop)
                if w != window and not 0 <= position - window + w < length
            )
            assert len(positions) == 2 * (window - crop) - truncated
            assert position not in positions


def test_contributor_count_away_from_boundaries():
    for crop in range(5):
        assert len(window_positions(20, 40, crop, 5)) == 2 * (5 - crop)


def test_positive_update_matches_formula():
    rng = np.random.default_rng(0)
    location = rng.uniform(-0.5, 0.5, (2, 4)).astype(np.float32)
    context = rng.uniform(-0.5, 0.5, (2, 4)).astype(np.float32)
    table = np.array([0, 1], dtype=np.int32)
    lr = 0.5

    loc0 = location.astype(np.float64)
    ctx0 = context.astype(np.float64)

    cbow_cpu_serial(two_word_batch(), location, context, table, 7, 2, 0, lr)

    # Position 0 predicts word 0 from word 1, position 1 predicts word 1 from word 0
    for target, neighbour in [(0, 1), (1, 0)]:
        hidden = loc0[neighbour]
        activation = hidden @ ctx0[target]
        assert abs(activation) < 5
        g = (1 - sigmoid(activation)) * lr
        np.testing.assert_allclose(context[target], ctx0[target] + g * hidden, rtol=1e-5, atol=1e-6)
        np.testing.assert_allclose(location[neighbour], loc0[neighbour] + g * ctx0[target], rtol=1e-5, atol=1e-6)


def test_positive_sample_saturation_skips_update():
    location = np.full((2, 4), 0.01, dtype=np.float32)
    context = np.full((2, 4), 0.01, dtype=np.float32)
    location[1] = 2.0
    context[0] = 2.0
    before_ctx0 = context[0].copy()
    before_loc1 = location[1].copy()

    cbow_cpu_serial(two_word_batch(), location, context, np.array([0, 1], dtype=np.int32), 3, 2, 0, 0.5)

    np.testing.assert_array_equal(context[0], before_ctx0)
    np.testing.assert_array_equal(location[1], before_loc1)
    # The other unit is not saturated and still learns
    assert not np.array_equal(context[1], np.full(4, 0.01, dtype=np.float32))


@pytest.mark.parametrize("negative_value, changed", [(-2.0, False), (-0.1, True)])
def test_negative_sample_saturation(negative_value, changed):
    location = np.ones((3, 4), dtype=np.float32)
    context = np.full((3, 4), 0.01, dtype=np.float32)
    context[2] = negative_value
    table = np.array([2], dtype=np.int32)

    cbow_cpu_serial(two_word_batch(), location, context, table, 11, 2, 3, 0.1)

    assert (not np.array_equal(context[2], np.full(4, negative_value, dtype=np.float32))) == changed


def test_zero_contributor_unit_is_skipped():
    location = np.ones((2, 4), dtype=np.float32)
    context = np.ones((2, 4), dtype=np.float32)
    tokens = np.zeros((1, 5), dtype=np.int32)
    tokens[0, :2] = [1, 0]

    cbow_cpu_serial(tokens, location, context, np.array([0, 1], dtype=np.int32), 5, 2, 2, 0.1)

    assert np.isfinite(location).all() and np.isfinite(context).all()
    np.testing.assert_array_equal(location, np.ones((2, 4)))
    np.testing.assert_array_equal(context, np.ones((2, 4)))


def test_padding_slots_do_nothing():
    location = np.ones((2, 4), dtype=np.float32)
    context = np.ones((2, 4), dtype=np.float32)
    tokens = np.zeros((3, 5), dtype=np.int32)

    cbow_cpu_serial(tokens, location, context, np.array([0, 1], dtype=np.int32), 5, 2, 2, 0.1)

    np.testing.assert_array_equal(location, np.ones((2, 4)))
    np.testing.assert_array_equal(context, np.ones((2, 4)))


def test_serial_kernel_is_deterministic():
    rng = np.random.default_rng(5)
    tokens = np.zeros((3, 9), dtype=np.int32)
    for row in tokens:
        length = rng.integers(2, 9)
        row[0] = length
        row[1:1 + length] = rng.integers(0, 6, size=length)
    location = rng.uniform(-0.1, 0.1, (6, 8)).astype(np.float32)
    context = rng.uniform(-0.1, 0.1, (6, 8)).astype(np.float32)
    table = np.array([0, 1, 1, 2, 3, 4, 5, 5], dtype=np.int32)

    results = []
    for _ in range(2):
        loc, ctx = location.copy(), context.copy()
        cbow_cpu_serial(tokens, loc, ctx, table, 1234, 3, 4, 0.05)
        results.append((loc, ctx))

    np.testing.assert_array_equal(results[0][0], results[1][0])
    np.testing.assert_array_equal(results[0][1], results[1][1])
    assert not np.array_equal(results[0][0], location)


def test_parallel_kernel_updates_and_stays_finite():
    rng = np.random.default_rng(9)
    tokens = np.zeros((16, 33), dtype=np.int32)
    for row in tokens:
        length = rng.integers(2, 33)
        row[0] = length
        row[1:1 + length] = rng.integers(0, 20, size=length)
    location = rng.uniform(-0.1, 0.1, (20, 16)).astype(np.float32)
    context = np.zeros((20, 16), dtype=np.float32)
    table = np.repeat(np.arange(20, dtype=np.int32), 3)

    cbow_cpu_parallel(tokens, location, context, table, 42, 5, 5, 0.01)

    assert np.isfinite(location).all() and np.isfinite(context).all()
    assert context.any()
