import signal
import threading
import time
from dataclasses import dataclass

import click
import numpy as np

from batch_builder import BatchBuilder
from device_memory import DeviceMemory
from negative_sampler import NegativeSampler
from subsampler import Subsampler
from text_iterator import TextIterator
from train_config import TrainConfig
from vocabulary import Vocabulary

# Kernel seeds are drawn from [0, KERNEL_SEED_RANGE) once per dispatched batch
KERNEL_SEED_RANGE = 99999


class CancellationToken:
    """Soft stop flag, polled by the training loop between corpus lines."""

    def __init__(self):
        self._event = threading.Event()

    def set(self):
        self._event.set()

    def is_set(self):
        return self._event.is_set()

    def install_interrupt_handler(self):
        """
        First Ctrl+C requests a stop after the current line; a second one falls back
        to the default KeyboardInterrupt. Returns the previous handler.
        """
        def handler(signum, frame):
            self.set()
            click.echo("\nStopping after the current line (Ctrl+C again to abort)...")
            signal.signal(signal.SIGINT, signal.default_int_handler)

        return signal.signal(signal.SIGINT, handler)


@dataclass
class TrainingStats:
    lines: int = 0
    words: int = 0
    sentences: int = 0
    batches: int = 0
    pending: int = 0
    elapsed: float = 0.0
    cancelled: bool = False

    @property
    def words_per_second(self):
        return self.words / self.elapsed if self.elapsed > 0 else 0.0


class ProgressReporter:
    def __init__(self, interval=1.0, enabled=True):
        self.interval = interval
        self.enabled = enabled
        self.start = time.monotonic()
        self.next_report = self.start

    def update(self, fraction, words):
        if not self.enabled:
            return
        now = time.monotonic()
        if now < self.next_report:
            return
        rate = words / (now - self.start + 1) / 1000.0
        click.echo(f"Progress: {fraction:.3%}  words/sec: {rate:.2f}k  \r", nl=False)
        self.next_report = now + self.interval

    def finish(self):
        if self.enabled:
            click.echo()


def train_embeddings(cfg: TrainConfig, vocab: Vocabulary, device, cancel=None, save_path=None, report=True):
    """
    Run one training pass over cfg.corpus, updating vocab in place.

    Sentences are packed into batches and each full batch is trained on the device before
    the next line is read. Sentences left over after the last full batch (end of corpus or
    cancellation) are dropped. If save_path is given the vocabulary is saved afterwards.
    """
    # Fails on a missing corpus before anything touches the device
    text_iterator = TextIterator(cfg.corpus)

    sampler = NegativeSampler(vocab.counts, vocab.min_count)
    sampler.check(cfg.negatives)
    subsampler = Subsampler(vocab.counts, sample=cfg.sample)
    rng = np.random.default_rng(cfg.seed)

    stats = TrainingStats()
    progress = ProgressReporter(enabled=report)
    start = time.monotonic()

    with DeviceMemory(device, cfg) as memory:
        memory.upload(vocab, sampler)

        def dispatch(tokens):
            memory.dispatch(tokens, int(rng.integers(KERNEL_SEED_RANGE)))

        builder = BatchBuilder(
            vocab, subsampler, dispatch, rng,
            batch_sentences=cfg.batch_sentences,
            max_positions=cfg.max_positions,
        )

        for tokens in text_iterator:
            stats.words += builder.add_sentence(tokens)
            stats.lines += 1
            progress.update(text_iterator.progress, stats.words)

            if cancel is not None and cancel.is_set():
                stats.cancelled = True
                break

        progress.finish()
        memory.download(vocab)

    stats.batches = builder.batches
    stats.sentences = builder.sentences
    stats.pending = builder.pending
    stats.elapsed = time.monotonic() - start

    if save_path is not None:
        vocab.save(save_path)
    return stats
