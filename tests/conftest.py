import numpy as np
import pytest

from train_config import TrainConfig
from vocabulary import VocabEntry, Vocabulary

CORPUS_LINES = [
    "the cat sat on the mat",
    "the dog sat on the log",
    "a cat and a dog are friends",
    "the mat is on the floor",
    "the log is in the yard",
    "cats and dogs sleep on mats",
    "the dog chased the cat",
]


def make_vocab(counts, dims=4, min_count=1, seed=0, scale=0.1):
    """Hand built vocabulary with words w0, w1, ... and small random vectors."""
    rng = np.random.default_rng(seed)
    entries = [
        VocabEntry(f"w{i}", i, c, rng.uniform(-scale, scale, dims), rng.uniform(-scale, scale, dims))
        for i, c in enumerate(counts)
    ]
    return Vocabulary(entries, min_count)


@pytest.fixture
def corpus_file(tmp_path):
    path = tmp_path / "corpus.txt"
    path.write_text("\n".join(CORPUS_LINES) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def small_config(corpus_file):
    return TrainConfig(
        corpus=str(corpus_file),
        min_count=1,
        embedding_dim=8,
        learning_rate=0.05,
        window=2,
        negatives=2,
        sample=0.0,
        batch_sentences=2,
        max_positions=8,
        device='cpu',
        parallel=False,
        seed=1,
    )
