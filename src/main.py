from cleaner import Cleaner
from device_memory import resolve_device
from exceptions import Word2VecError
from text_iterator import TextIterator
from train_config import DEFAULT_CONFIG_PATH, load_config
from training_loop import CancellationToken, train_embeddings
from vocab_builder import VocabBuilder
from vocabulary import Vocabulary

import click
import signal
import time


def build_vocabulary(cfg):
    """Count the corpus and build a freshly initialized vocabulary."""
    text_iterator = TextIterator(cfg.corpus)
    vocab_builder = VocabBuilder(text_iterator, min_freq=cfg.min_count, max_vocab_size=cfg.max_vocab_size)
    return vocab_builder.build_vocab(cfg.embedding_dim, seed=cfg.seed)


@click.group()
def cli():
    """CBOW word embedding training on the GPU."""
    pass


@cli.command()
@click.argument('source', type=click.Path(exists=True, dir_okay=False))
@click.argument('dest', type=click.Path(dir_okay=False, writable=True))
def clean(source, dest):
    """Normalize a raw text file into one sentence per line."""
    click.echo(f"Cleaning corpus [{time.strftime('%H:%M:%S')}]")
    written = Cleaner().clean_file(source, dest)
    click.echo(f"Wrote {written} sentences to {dest}")


@cli.command()
@click.option('--config', default=DEFAULT_CONFIG_PATH, help='Path to config file')
@click.option('--output', default='vocab.pt', help='Path to save the vocabulary')
def vocab(config, output):
    """Build the vocabulary with freshly initialized vectors."""
    try:
        cfg = load_config(config)
        click.echo("Building vocabulary...")
        vocabulary = build_vocabulary(cfg)
    except Word2VecError as e:
        raise click.ClickException(str(e))

    vocabulary.save(output)
    click.echo(f"Saved {len(vocabulary)} words to {output}")


@cli.command()
@click.option('--config', default=DEFAULT_CONFIG_PATH, help='Path to config file')
@click.option('--vocab', 'vocab_path', default=None, help='Vocabulary to continue training (built from the corpus if omitted)')
@click.option('--output', default='vocab.pt', help='Path to save the trained vocabulary')
@click.option('--device', type=click.Choice(['auto', 'cuda', 'cpu']), default=None, help='Override the configured device')
@click.option('--seed', type=int, default=None, help='Override the configured seed')
def train(config, vocab_path, output, device, seed):
    """Train word embeddings over the corpus."""
    try:
        cfg = load_config(config, device=device, seed=seed)
        compute_device = resolve_device(cfg.device)
        click.echo(f"Using device: {compute_device}")

        if vocab_path:
            click.echo(f"Loading vocabulary from {vocab_path}...")
            vocabulary = Vocabulary.load(vocab_path)
        else:
            click.echo("Building vocabulary...")
            vocabulary = build_vocabulary(cfg)
        click.echo(f"Vocabulary: {len(vocabulary)} words, {vocabulary.embedding_dim}-dim vectors")

        click.echo(f"Training model [{time.strftime('%H:%M:%S')}]")
        click.echo("Hit Ctrl+C to stop training early...\n")
        cancel = CancellationToken()
        previous = cancel.install_interrupt_handler()
        try:
            stats = train_embeddings(cfg, vocabulary, compute_device, cancel=cancel, save_path=output)
        finally:
            signal.signal(signal.SIGINT, previous)
    except Word2VecError as e:
        raise click.ClickException(str(e))

    if stats.cancelled:
        click.echo(f"Training stopped early after {stats.lines} lines")
    click.echo(
        f"{stats.words} words, {stats.sentences} sentences in {stats.batches} batches, "
        f"{stats.words_per_second / 1000:.2f}k words/sec"
    )
    click.echo(f"Saved vectors to {output}. Done!")


if __name__ == "__main__":
    cli()
