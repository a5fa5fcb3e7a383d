import numpy as np

class Subsampler:

    def __init__(self, counts, sample=1e-8):
        """
        counts: raw corpus frequency of each vocabulary id
        sample: subsampling constant, a token is kept with probability 1 - sqrt(sample * count)

        Rare words are almost always kept while very frequent ones are discounted.
        """
        self.sample = sample
        counts = np.asarray(counts, dtype=np.float64)
        self.keep_prob = np.clip(1.0 - np.sqrt(sample * counts), 0.0, 1.0)

    def keep_mask(self, ids, rng):
        """Boolean mask of the token ids that survive subsampling"""
        return rng.random(len(ids)) < self.keep_prob[ids]

    def subsample_ids(self, ids, rng):
        """Subsamples an array of token ids"""
        return ids[self.keep_mask(ids, rng)]
