"""Exceptions raised while preparing and running a training job."""


class Word2VecError(Exception):
    """Base exception for training errors."""
    pass


class CorpusError(Word2VecError):
    """Corpus file is missing or cannot be read."""
    pass


class DeviceError(Word2VecError):
    """Compute device could not be initialized."""
    pass


class ConfigError(Word2VecError):
    """Configuration file or values are invalid."""
    pass


class VocabularyError(Word2VecError):
    """Vocabulary or sampling table cannot be used for training."""
    pass
