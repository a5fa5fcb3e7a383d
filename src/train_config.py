import os
from dataclasses import dataclass, fields
from typing import Optional

import yaml

from exceptions import ConfigError

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), '..', 'config.yaml')

DEVICES = ('auto', 'cuda', 'cpu')


@dataclass
class TrainConfig:
    corpus: str
    min_count: int = 5
    max_vocab_size: Optional[int] = None
    embedding_dim: int = 100
    learning_rate: float = 0.01
    window: int = 5
    negatives: int = 5
    sample: float = 1e-8
    batch_sentences: int = 10
    max_positions: int = 64
    device: str = 'auto'
    parallel: bool = True
    seed: Optional[int] = None

    def __post_init__(self):
        if self.min_count < 1:
            raise ConfigError("min_count must be at least 1")
        if self.max_vocab_size is not None and self.max_vocab_size < 1:
            raise ConfigError("max_vocab_size must be positive when set")
        # CUDA blocks hold one thread per dimension
        if not 1 <= self.embedding_dim <= 1024:
            raise ConfigError("embedding_dim must be between 1 and 1024")
        if self.learning_rate <= 0:
            raise ConfigError("learning_rate must be positive")
        if self.window < 1:
            raise ConfigError("window must be at least 1")
        if self.negatives < 0:
            raise ConfigError("negatives cannot be negative")
        if self.sample < 0:
            raise ConfigError("sample cannot be negative")
        if self.batch_sentences < 1:
            raise ConfigError("batch_sentences must be at least 1")
        # Room for at least two tokens per sentence
        if self.max_positions < 3:
            raise ConfigError("max_positions must be at least 3")
        if self.device not in DEVICES:
            raise ConfigError(f"device must be one of {', '.join(DEVICES)}")


def load_config(config_path, **overrides):
    """Load configuration from a YAML file; non-None overrides replace file values."""
    try:
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config {config_path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"Config {config_path} must be a mapping")

    known = {f.name for f in fields(TrainConfig)}
    unknown = set(data) - known
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(sorted(unknown))}")

    data.update({k: v for k, v in overrides.items() if v is not None})
    try:
        return TrainConfig(**data)
    except TypeError as e:
        raise ConfigError(str(e)) from e
