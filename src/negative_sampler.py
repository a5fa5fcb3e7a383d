import numpy as np

from exceptions import VocabularyError


class NegativeSampler:
    def __init__(self, counts, min_count, power=0.6):
        """
        Negative samples are words the model should not predict for a context.
        We use them as a secondary training objective, pushing their scores down.

        Sample negatives proportional to count^power, normalized by min_count^power.
        Word i appears round(count_i^power / min_count^power) times in the table, so
        drawing a uniform index approximates the smoothed unigram distribution.
        """
        counts = np.asarray(counts, dtype=np.float64)
        self.power = power
        self.vocab_size = len(counts)

        repeats = np.floor(counts ** power / float(min_count) ** power + 0.5).astype(np.int64)
        self.table = np.repeat(np.arange(self.vocab_size, dtype=np.int32), repeats)
        self.table_size = len(self.table)

    def __len__(self):
        return self.table_size

    def check(self, num_negatives):
        """Raise if negatives are requested but no word made it into the table"""
        if num_negatives > 0 and self.table_size == 0:
            raise VocabularyError(
                "Sampling table is empty; every word count is far below min_count"
            )

    def sample(self, rng, num_samples):
        """Draw ids uniformly from the table"""
        return self.table[rng.integers(0, self.table_size, size=num_samples)]
