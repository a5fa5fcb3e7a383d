import os

from exceptions import CorpusError


class TextIterator:
    def __init__(self, filepath: str):
        """
        This class iterates through a corpus file one line at a time and yields the
        whitespace separated tokens of each line.
        The file is read in binary mode so we can count the bytes consumed, which the
        training loop uses to report how far through the corpus it is.
        """
        if not os.path.isfile(filepath):
            raise CorpusError(f"Corpus file not found: {filepath}")
        if not os.access(filepath, os.R_OK):
            raise CorpusError(f"Corpus file is not readable: {filepath}")
        self.filepath = filepath
        self.size = os.path.getsize(filepath)
        self.bytes_read = 0

    @property
    def progress(self):
        """Fraction of the file consumed by the current pass."""
        if self.size == 0:
            return 1.0
        return self.bytes_read / self.size

    def __iter__(self):
        self.bytes_read = 0
        try:
            f = open(self.filepath, "rb")
        except OSError as e:
            raise CorpusError(f"Cannot open corpus {self.filepath}: {e}") from e

        with f:
            for raw in f:
                self.bytes_read += len(raw)
                yield raw.decode("utf-8", errors="replace").split()
