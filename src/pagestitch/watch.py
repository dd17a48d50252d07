"""Change notification for watch mode.

A polling watcher compares file fingerprints (mtime and size) between
passes and hands out debounced batches of changed paths. Rebuilds run in the
watching thread, one at a time, so they never overlap.
"""

import logging
import os
import time
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path

from .errors import PagestitchError

logger = logging.getLogger(__name__)

Fingerprint = tuple[int, int]


def snapshot(root: Path, exclude: Iterable[Path] = ()) -> dict[str, Fingerprint]:
    """Fingerprint every file below root.

    Hidden directories and anything below an excluded directory (such as the
    output directory) are skipped.
    """
    root = Path(root)
    excluded = {Path(p).resolve() for p in exclude}
    fingerprints: dict[str, Fingerprint] = {}

    for dirpath, dirnames, filenames in os.walk(root):
        current = Path(dirpath)
        dirnames[:] = sorted(
            d for d in dirnames if not d.startswith(".") and (current / d).resolve() not in excluded
        )
        for filename in filenames:
            path = current / filename
            try:
                stat = path.stat()
            except OSError:
                # Removed between listing and stat; the next pass reports it
                continue
            fingerprints[str(path)] = (stat.st_mtime_ns, stat.st_size)
    return fingerprints


def changed_paths(before: dict[str, Fingerprint], after: dict[str, Fingerprint]) -> set[str]:
    """Paths created, modified or removed between two snapshots."""
    changed = {path for path, fp in after.items() if before.get(path) != fp}
    changed |= set(before) - set(after)
    return changed


class PollingWatcher:
    """Watches a directory tree and yields debounced batches of changes."""

    def __init__(
        self,
        root: Path,
        exclude: Iterable[Path] = (),
        interval: float = 0.5,
        debounce: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.root = Path(root)
        self.exclude = list(exclude)
        self.interval = interval
        self.debounce = debounce
        self._sleep = sleep
        self._clock = clock
        self._stopped = False
        self._state = snapshot(self.root, self.exclude)

    def poll(self) -> set[str]:
        """Take a new snapshot and return what changed since the last one."""
        current = snapshot(self.root, self.exclude)
        changed = changed_paths(self._state, current)
        self._state = current
        return changed

    def batches(self) -> Iterator[list[str]]:
        """Yield sorted batches of changed paths until stop() is called.

        After the first change is seen, polling continues until nothing has
        changed for ``debounce`` seconds, and everything seen is yielded as
        one batch.
        """
        while not self._stopped:
            pending = self.poll()
            if not pending:
                self._sleep(self.interval)
                continue

            quiet_since = self._clock()
            while not self._stopped and self._clock() - quiet_since < self.debounce:
                self._sleep(min(self.interval, self.debounce))
                more = self.poll()
                if more:
                    pending |= more
                    quiet_since = self._clock()

            logger.debug("Change batch: %s", ", ".join(sorted(pending)))
            yield sorted(pending)

    def stop(self) -> None:
        self._stopped = True


def watch_and_rebuild(
    rebuild: Callable[[list[str]], object],
    watcher: PollingWatcher,
    on_error: Callable[[list[str], PagestitchError], None] | None = None,
) -> int:
    """Run one rebuild per change batch until the watcher stops.

    A failed rebuild is reported through ``on_error`` (or logged) and
    watching continues.

    Returns:
        Number of successful rebuilds.
    """
    succeeded = 0
    for batch in watcher.batches():
        try:
            rebuild(batch)
        except PagestitchError as e:
            if on_error is not None:
                on_error(batch, e)
            else:
                logger.error("Regeneration failed: %s", e)
            continue
        succeeded += 1
    return succeeded
