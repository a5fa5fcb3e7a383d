from collections import Counter
from text_iterator import TextIterator
from vocabulary import Vocabulary

class VocabBuilder:
    def __init__(self, text_iterator: TextIterator, min_freq=5, max_vocab_size=None):
        self.min_freq = min_freq
        self.max_vocab_size = max_vocab_size
        self.word_counts = Counter()
        self.text_iterator = text_iterator

    def _update_from_iterator(self):
        """
        Iterate through our corpus and count word frequencies
        """
        for tokens in self.text_iterator:
            self.word_counts.update(tokens)


    def build_vocab(self, embedding_dim, seed=None):
        """
        Build the vocabulary, assigning dense ids by descending frequency
        """
        self._update_from_iterator()
        return Vocabulary.from_counts(
            self.word_counts,
            min_count=self.min_freq,
            embedding_dim=embedding_dim,
            max_vocab_size=self.max_vocab_size,
            seed=seed,
        )
