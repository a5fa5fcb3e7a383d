import numpy as np

from subsampler import Subsampler
from vocabulary import Vocabulary


class BatchBuilder:
    def __init__(self, vocab: Vocabulary, subsampler: Subsampler, dispatch, rng, batch_sentences=10, max_positions=64):
        """
        Packs corpus sentences into a fixed shape token batch.

        Row layout: tokens[s, 0] is the number of kept words, tokens[s, 1:1+len] their ids.
        When batch_sentences rows are filled, dispatch(tokens) is called and must not return
        before it is done with the array, since the same buffer is zeroed and refilled.
        A partially filled batch is never dispatched.
        """
        self.vocab = vocab
        self.subsampler = subsampler
        self.dispatch = dispatch
        self.rng = rng
        self.batch_sentences = batch_sentences
        self.max_positions = max_positions
        self.tokens = np.zeros((batch_sentences, 1 + max_positions), dtype=np.int32)
        self.sentence = 0
        self.batches = 0
        self.sentences = 0

    @property
    def pending(self):
        """Sentences accumulated since the last dispatch"""
        return self.sentence

    def add_sentence(self, tokens):
        """
        Filter, subsample and store one corpus line.
        Returns the number of in-vocabulary words on the line.
        """
        ids = self.vocab.lookup(tokens)
        if len(ids) < 2:
            return len(ids)

        kept = self.subsampler.subsample_ids(ids, self.rng)[:self.max_positions - 1]
        if len(kept) < 2:
            return len(ids)

        row = self.tokens[self.sentence]
        row[0] = len(kept)
        row[1:1 + len(kept)] = kept
        self.sentence += 1

        if self.sentence == self.batch_sentences:
            self.dispatch(self.tokens)
            self.batches += 1
            self.sentences += self.sentence
            self.sentence = 0
            self.tokens.fill(0)

        return len(ids)
