from dataclasses import dataclass

import numpy as np
import torch
from torch import nn

from exceptions import VocabularyError


@dataclass
class VocabEntry:
    word: str
    id: int
    count: int
    location: np.ndarray  # (embedding_dim,) the embedding being trained
    context: np.ndarray   # (embedding_dim,) output side vector used by negative sampling


class Vocabulary:
    def __init__(self, entries, min_count):
        """
        Dense table of words. entries[i].id == i for every entry, and the word -> id
        lookup lives in a separate index so entries never point back at the table.
        """
        self.entries = list(entries)
        self.min_count = min_count
        self.index = {}
        for i, entry in enumerate(self.entries):
            if entry.id != i:
                raise VocabularyError(f"Entry '{entry.word}' has id {entry.id}, expected {i}")
            self.index[entry.word] = i

    @classmethod
    def from_counts(cls, word_counts, min_count, embedding_dim, max_vocab_size=None, seed=None):
        """Build a vocabulary from word frequencies, most frequent word first."""
        words = []
        for word, count in word_counts.most_common():
            if count < min_count:
                break
            words.append((word, count))
            if max_vocab_size and len(words) >= max_vocab_size:
                break

        if not words:
            raise VocabularyError(f"No word occurs at least {min_count} times")

        generator = torch.Generator()
        if seed is None:
            generator.seed()
        else:
            generator.manual_seed(seed)

        # Initialize
        location = torch.empty(len(words), embedding_dim, dtype=torch.float64)
        context = torch.empty(len(words), embedding_dim, dtype=torch.float64)
        nn.init.xavier_uniform_(location, generator=generator)
        nn.init.xavier_uniform_(context, generator=generator)
        location = location.numpy()
        context = context.numpy()

        entries = [
            VocabEntry(word, i, count, location[i].copy(), context[i].copy())
            for i, (word, count) in enumerate(words)
        ]
        return cls(entries, min_count)

    def __len__(self):
        return len(self.entries)

    def __contains__(self, word):
        return word in self.index

    def __getitem__(self, word):
        try:
            return self.entries[self.index[word]]
        except KeyError:
            raise VocabularyError(f"Word '{word}' not in vocabulary") from None

    def __iter__(self):
        return iter(self.entries)

    @property
    def embedding_dim(self):
        return self.entries[0].location.shape[0]

    @property
    def counts(self):
        return np.array([e.count for e in self.entries], dtype=np.int64)

    def lookup(self, tokens):
        """Ids of the tokens that are in the vocabulary, in order."""
        index = self.index
        return np.array([index[t] for t in tokens if t in index], dtype=np.int32)

    def location_matrix(self):
        return np.stack([e.location for e in self.entries])

    def context_matrix(self):
        return np.stack([e.context for e in self.entries])

    def update_vectors(self, location, context):
        """Write (vocab_size, embedding_dim) matrices back into the entries, row i -> id i."""
        if location.shape != (len(self), self.embedding_dim) or context.shape != location.shape:
            raise VocabularyError(
                f"Expected matrices of shape {(len(self), self.embedding_dim)}, "
                f"got {location.shape} and {context.shape}"
            )
        for entry in self.entries:
            entry.location[:] = location[entry.id]
            entry.context[:] = context[entry.id]

    def save(self, path):
        torch.save({
            'words': [e.word for e in self.entries],
            'counts': [e.count for e in self.entries],
            'min_count': self.min_count,
            'location': torch.from_numpy(self.location_matrix()),
            'context': torch.from_numpy(self.context_matrix()),
        }, path)

    @classmethod
    def load(cls, path):
        data = torch.load(path, map_location='cpu', weights_only=False)
        location = data['location'].numpy()
        context = data['context'].numpy()
        entries = [
            VocabEntry(word, i, count, location[i].copy(), context[i].copy())
            for i, (word, count) in enumerate(zip(data['words'], data['counts']))
        ]
        return cls(entries, data['min_count'])
