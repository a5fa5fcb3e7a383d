"""
CBOW with negative sampling as a data-parallel kernel.

One unit of work per (sentence, position) slot of a token batch. A unit averages the
location vectors of its context window into a hidden vector, scores the centre word and
a few sampled negatives against that hidden vector, and applies the gradients straight
to the shared location/context matrices. Units never lock: two units touching the same
row race, which is the usual Hogwild trade of exactness for throughput.

The same unit is implemented twice:
  make_cuda_kernel   one CUDA block per unit, one thread (lane) per dimension, shared
                     memory scratch and block barriers
  cbow_cpu_*         numba njit, units spread over threads with prange, lanes as loops
"""

import math
from functools import lru_cache

import numpy as np
from numba import cuda, float32, int32, njit, prange

LCG_MULTIPLIER = 1664525
LCG_INCREMENT = 1013904223
LCG_MASK = 0xFFFFFFFF

# Gradient steps are skipped past this activation; sigmoid is saturated there anyway
MAX_ACTIVATION = 5.0


@njit
def lcg_step(state):
    """One step of a 32-bit linear congruential generator."""
    return (state * LCG_MULTIPLIER + LCG_INCREMENT) & LCG_MASK


@njit
def window_crop(seed, position, window):
    """Generator state and window crop in [0, window) for the unit at `position`."""
    state = lcg_step((seed + position) & LCG_MASK)
    return state, state % window


@njit
def window_positions(position, length, crop, window):
    """
    Sentence positions averaged into the hidden vector: offsets crop..2*window-crop
    around `position`, minus the centre and anything outside [0, length).
    """
    out = np.empty(2 * window, dtype=np.int64)
    count = 0
    for w in range(crop, 2 * window + 1 - crop):
        if w == window:
            continue
        p = position - window + w
        if p < 0 or p >= length:
            continue
        out[count] = p
        count += 1
    return out[:count]


@njit
def sigmoid(x):
    return 1.0 / (1.0 + math.exp(-x))


@njit
def _train_unit(tokens, location, context, table, sentence, position, seed, window, negatives, learning_rate):
    length = tokens[sentence, 0]
    dims = location.shape[1]

    state, crop = window_crop(seed, position, window)
    contributors = window_positions(position, length, crop, window)
    # Nothing to average, nothing to update
    if contributors.size == 0:
        return

    hidden = np.zeros(dims, dtype=np.float32)
    for p in contributors:
        word = tokens[sentence, p + 1]
        for dim in range(dims):
            hidden[dim] += location[word, dim]
    for dim in range(dims):
        hidden[dim] = hidden[dim] / contributors.size

    error = np.zeros(dims, dtype=np.float32)
    for n in range(negatives + 1):
        if n == 0:
            target = tokens[sentence, position + 1]
            label = 1.0
        else:
            state = lcg_step(state)
            target = table[state % table.shape[0]]
            label = 0.0

        activation = 0.0
        for dim in range(dims):
            activation += hidden[dim] * context[target, dim]

        if n == 0 and activation > MAX_ACTIVATION:
            continue
        if n > 0 and activation < -MAX_ACTIVATION:
            continue

        g = (label - sigmoid(activation)) * learning_rate
        for dim in range(dims):
            error[dim] += g * context[target, dim]
            context[target, dim] += g * hidden[dim]

    for p in contributors:
        word = tokens[sentence, p + 1]
        for dim in range(dims):
            location[word, dim] += error[dim]


def _cbow_cpu(tokens, location, context, table, seed, window, negatives, learning_rate):
    sentences = tokens.shape[0]
    positions = tokens.shape[1] - 1
    for unit in prange(sentences * positions):
        sentence = unit // positions
        position = unit - sentence * positions
        # Slots past the sentence length are padding
        if position < tokens[sentence, 0]:
            _train_unit(tokens, location, context, table, sentence, position,
                        seed, window, negatives, learning_rate)


cbow_cpu_parallel = njit(parallel=True)(_cbow_cpu)
cbow_cpu_serial = njit(_cbow_cpu)


@lru_cache(maxsize=None)
def make_cuda_kernel(dims, window, negatives, positions, learning_rate):
    """
    Compile-time specialised CUDA kernel; shared arrays need a constant size.
    Launch with sentences * positions blocks of `dims` threads.
    """
    learning_rate = np.float32(learning_rate)
    lcg_step_device = cuda.jit(device=True)(lcg_step.py_func)

    @cuda.jit
    def cbow_cuda(tokens, location, context, table, table_length, seed):
        hidden = cuda.shared.array(dims, dtype=float32)
        error = cuda.shared.array(dims, dtype=float32)
        activation = cuda.shared.array(dims, dtype=float32)
        g = cuda.shared.array(1, dtype=float32)
        crop = cuda.shared.array(1, dtype=int32)
        target_id = cuda.shared.array(1, dtype=int32)

        sentence = cuda.blockIdx.x // positions
        position = cuda.blockIdx.x - sentence * positions
        dim = cuda.threadIdx.x

        length = tokens[sentence, 0]
        if position >= length:
            return

        state = 0
        if dim == 0:
            state = lcg_step_device((seed + position) & LCG_MASK)
            crop[0] = state % window
        cuda.syncthreads()

        first = crop[0]
        total = float32(0.0)
        count = 0
        for w in range(first, 2 * window + 1 - first):
            if w == window:
                continue
            p = position - window + w
            if p < 0 or p >= length:
                continue
            total += location[tokens[sentence, p + 1], dim]
            count += 1
        # Same count on every lane, so the whole block leaves together
        if count == 0:
            return

        hidden[dim] = total / count
        error[dim] = 0

        for n in range(negatives + 1):
            if n == 0:
                target = tokens[sentence, position + 1]
            else:
                if dim == 0:
                    state = lcg_step_device(state)
                    target_id[0] = table[state % table_length]
                cuda.syncthreads()
                target = target_id[0]

            activation[dim] = hidden[dim] * context[target, dim]
            cuda.syncthreads()

            active = dims
            while active > 1:
                half = (active + 1) // 2
                if dim < active - half:
                    activation[dim] += activation[dim + half]
                cuda.syncthreads()
                active = half

            dot = activation[0]
            if (n != 0 or dot <= MAX_ACTIVATION) and (n == 0 or dot >= -MAX_ACTIVATION):
                if dim == 0:
                    label = float32(1.0) if n == 0 else float32(0.0)
                    g[0] = (label - float32(1.0) / (float32(1.0) + math.exp(-dot))) * learning_rate
                cuda.syncthreads()

                error[dim] += g[0] * context[target, dim]
                context[target, dim] += g[0] * hidden[dim]
            cuda.syncthreads()

        for w in range(first, 2 * window + 1 - first):
            if w == window:
                continue
            p = position - window + w
            if p < 0 or p >= length:
                continue
            location[tokens[sentence, p + 1], dim] += error[dim]

    return cbow_cuda
