import numpy as np
import torch
from numba import cuda

from cbow_kernel import cbow_cpu_parallel, cbow_cpu_serial, make_cuda_kernel
from exceptions import DeviceError
from negative_sampler import NegativeSampler
from train_config import TrainConfig
from vocabulary import Vocabulary


def resolve_device(name='auto'):
    """Pick the torch device for a run; asking for CUDA without a usable GPU is an error."""
    if name == 'auto':
        return torch.device('cuda' if torch.cuda.is_available() and cuda.is_available() else 'cpu')
    if name == 'cuda':
        if not torch.cuda.is_available():
            raise DeviceError("CUDA was requested but torch cannot see a GPU")
        if not cuda.is_available():
            raise DeviceError("CUDA was requested but numba cannot initialize the driver")
        return torch.device('cuda')
    if name == 'cpu':
        return torch.device('cpu')
    raise DeviceError(f"Unknown device '{name}'")


class DeviceMemory:
    def __init__(self, device: torch.device, cfg: TrainConfig):
        """
        Device side copy of the embedding matrices for one training run.

        Use as a context manager: whatever happens inside the block, the device tensors
        are released on exit. Reconciling the trained values into the vocabulary is an
        explicit download() so a failed run never overwrites the host vectors.
        """
        self.device = device
        self.cfg = cfg
        self.location = None
        self.context = None
        self.table = None
        self.tokens = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False

    @property
    def is_cuda(self):
        return self.device.type == 'cuda'

    def upload(self, vocab: Vocabulary, sampler: NegativeSampler):
        """Allocate device storage and copy the vectors; row i holds the word with id i."""
        cfg = self.cfg
        if vocab.embedding_dim != cfg.embedding_dim:
            raise DeviceError(
                f"Vocabulary has {vocab.embedding_dim}-dim vectors, config expects {cfg.embedding_dim}"
            )
        try:
            self.location = torch.as_tensor(vocab.location_matrix(), dtype=torch.float32).to(self.device)
            self.context = torch.as_tensor(vocab.context_matrix(), dtype=torch.float32).to(self.device)
            # Never indexed when the table is empty; keep one slot so the kernel has a valid array
            table = sampler.table if len(sampler) else np.zeros(1, dtype=np.int32)
            self.table = torch.as_tensor(table, dtype=torch.int32).to(self.device)
            self.tokens = torch.zeros(
                (cfg.batch_sentences, 1 + cfg.max_positions), dtype=torch.int32, device=self.device
            )
        except RuntimeError as e:
            raise DeviceError(f"Could not allocate training buffers on {self.device}: {e}") from e

    def dispatch(self, batch, seed):
        """Run the kernel over one token batch; returns once the device is done with it."""
        if self.tokens is None:
            raise DeviceError("dispatch() called before upload()")

        self.tokens.copy_(torch.from_numpy(batch))
        cfg = self.cfg

        if self.is_cuda:
            kernel = make_cuda_kernel(
                cfg.embedding_dim, cfg.window, cfg.negatives, cfg.max_positions, cfg.learning_rate
            )
            blocks = cfg.batch_sentences * cfg.max_positions
            kernel[blocks, cfg.embedding_dim](
                cuda.as_cuda_array(self.tokens),
                cuda.as_cuda_array(self.location),
                cuda.as_cuda_array(self.context),
                cuda.as_cuda_array(self.table),
                len(self.table),
                seed,
            )
            cuda.synchronize()
        else:
            kernel = cbow_cpu_parallel if cfg.parallel else cbow_cpu_serial
            kernel(
                self.tokens.numpy(),
                self.location.numpy(),
                self.context.numpy(),
                self.table.numpy(),
                seed,
                cfg.window,
                cfg.negatives,
                cfg.learning_rate,
            )

    def download(self, vocab: Vocabulary):
        """Copy the trained matrices back into the vocabulary entries"""
        if self.location is None:
            raise DeviceError("download() called before upload()")
        vocab.update_vectors(
            self.location.cpu().numpy().astype(np.float64),
            self.context.cpu().numpy().astype(np.float64),
        )

    def release(self):
        had_memory = self.location is not None
        self.location = None
        self.context = None
        self.table = None
        self.tokens = None
        if had_memory and self.is_cuda:
            torch.cuda.synchronize()
            torch.cuda.empty_cache()
