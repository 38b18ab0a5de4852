"""Parsing pipeline and background dataset loader."""
import time
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from tunnelscope.assembler import assemble
from tunnelscope.categorizer import categorize
from tunnelscope.decoder import DecodeResult, EmptyInputError, MalformedLine, decode_lines, decode_text
from tunnelscope.self_metrics import SelfMetrics
from tunnelscope.series import Dataset

logger = logging.getLogger(__name__)


def build_dataset(decoded: DecodeResult) -> Dataset:
    """Assemble and categorize decoded samples into a dataset."""
    assembled = assemble(decoded.samples)
    groups = categorize(assembled.series.values())
    return Dataset(
        groups=groups,
        time_range=assembled.time_range,
        total_samples=assembled.total_samples,
    )


def parse(text: str, self_metrics: Optional[SelfMetrics] = None) -> Dataset:
    """
    Parse JSON-lines text into a dataset.

    Raises:
        EmptyInputError: no line held a valid sample
    """
    return build_dataset(decode_text(text, self_metrics=self_metrics))


def parse_file(path, self_metrics: Optional[SelfMetrics] = None) -> Dataset:
    """
    Parse a JSON-lines file, streaming it line by line.

    The file is read as bytes and each line decoded on its own, so invalid
    UTF-8 costs only the lines that carry it.
    """
    with open(path, 'rb') as f:
        return build_dataset(decode_lines(f, self_metrics=self_metrics))


@dataclass(frozen=True)
class LoadOutcome:
    """Result of one loader run."""
    generation: int
    source: str
    dataset: Optional[Dataset] = None
    skipped: Optional[List[MalformedLine]] = None
    error: Optional[str] = None
    duration_s: float = 0.0


class DatasetLoader:
    """
    Holds the current dataset and replaces it wholesale on each load.

    Loads may run on a background thread; the finished dataset is published
    under a lock. Starting a new load makes any in-flight load stale and its
    result is discarded when it completes.
    """

    def __init__(self, self_metrics: Optional[SelfMetrics] = None):
        self.self_metrics = self_metrics
        self._lock = threading.Lock()
        self._generation = 0
        self._dataset: Optional[Dataset] = None
        self._source: Optional[str] = None
        self._last_outcome: Optional[LoadOutcome] = None
        self._loading = False
        self._thread: Optional[threading.Thread] = None

    @property
    def dataset(self) -> Optional[Dataset]:
        with self._lock:
            return self._dataset

    @property
    def source(self) -> Optional[str]:
        with self._lock:
            return self._source

    @property
    def loading(self) -> bool:
        with self._lock:
            return self._loading

    @property
    def last_outcome(self) -> Optional[LoadOutcome]:
        with self._lock:
            return self._last_outcome

    def _next_generation(self) -> int:
        with self._lock:
            self._generation += 1
            self._loading = True
            # Earlier background loads are stale from here on
            self._thread = None
            return self._generation

    def _run(self, generation: int, source: str, decode) -> LoadOutcome:
        start = time.time()
        try:
            decoded = decode()
            dataset = build_dataset(decoded)
        except EmptyInputError as e:
            logger.error(f"Failed to parse {source}: {e}")
            if self.self_metrics:
                self.self_metrics.record_parse_failure("empty_input")
            outcome = LoadOutcome(generation, source, error=str(e), duration_s=time.time() - start)
        except OSError as e:
            logger.error(f"Failed to read {source}: {e}")
            if self.self_metrics:
                self.self_metrics.record_parse_failure("read_error")
            outcome = LoadOutcome(generation, source, error=str(e), duration_s=time.time() - start)
        else:
            outcome = LoadOutcome(
                generation,
                source,
                dataset=dataset,
                skipped=decoded.skipped,
                duration_s=time.time() - start,
            )

        self._publish(outcome)
        return outcome

    def _publish(self, outcome: LoadOutcome):
        with self._lock:
            if outcome.generation != self._generation:
                logger.info(
                    f"Discarding stale load of {outcome.source} "
                    f"(generation {outcome.generation}, current {self._generation})"
                )
                return

            self._loading = False
            self._last_outcome = outcome
            if outcome.dataset is None:
                # A failed parse leaves the previous dataset in place
                return
            self._dataset = outcome.dataset
            self._source = outcome.source

        dataset = outcome.dataset
        logger.info(
            f"Loaded {outcome.source}: {dataset.total_samples} samples, "
            f"{dataset.series_count} series in {len(dataset.groups)} groups "
            f"({outcome.duration_s:.3f}s)"
        )
        if self.self_metrics:
            self.self_metrics.record_parse_duration(outcome.duration_s)
            self.self_metrics.record_dataset(
                {key: len(group.series) for key, group in dataset.groups.items()}
            )

    def load_text(self, text: str, source: str = "<text>") -> LoadOutcome:
        """Parse text on the calling thread."""
        generation = self._next_generation()
        return self._run(generation, source, lambda: decode_text(text, self.self_metrics))

    def load_file(self, path, background: bool = False):
        """
        Parse a file, either synchronously or on a daemon thread.

        Returns the LoadOutcome when synchronous, otherwise the started thread.
        """
        path = Path(path)
        generation = self._next_generation()

        def decode():
            with open(path, 'rb') as f:
                return decode_lines(f, self.self_metrics)

        if not background:
            return self._run(generation, str(path), decode)

        thread = threading.Thread(
            target=run_loader_thread,
            args=(self, generation, str(path), decode),
            daemon=True
        )
        with self._lock:
            self._thread = thread
        thread.start()
        logger.info(f"Started background load of {path} (generation {generation})")
        return thread

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the current background load finishes.

        Returns True at once when the current load ran synchronously. Loads
        superseded by a newer one are not waited for; their results are
        discarded anyway.
        """
        with self._lock:
            thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()


def run_loader_thread(loader: DatasetLoader, generation: int, source: str, decode):
    """Run one load in a separate thread."""
    try:
        loader._run(generation, source, decode)
    except Exception as e:
        logger.error(f"Loader thread error: {e}", exc_info=True)
        loader._publish(LoadOutcome(generation, source, error=str(e)))
