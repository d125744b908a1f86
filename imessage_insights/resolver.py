"""
Handle resolution: raw archive identifier → display name.

Resolution is best-effort, not a verified identity merge. A handle is first
normalized (emails lowercased, phones reduced to digits) and then offered to
an ordered list of matchers; the first one that returns a name wins:

    1. exact            normalized key is in the index
    2. strip_country    >10 digits starting with "1": retry without it
    3. add_country      exactly 10 digits: retry with a leading "1"
    4. suffix           some key ends with the last 7 characters

If nothing matches, the raw identifier is returned unchanged and the miss
is recorded as a diagnostic.

The suffix matcher can match several keys (e.g. two numbers sharing their
last 7 digits in different area codes). The lexicographically smallest key
wins so results do not depend on dict ordering. Keys shorter than 7
characters use the whole key, and emails take part too, so two addresses
sharing a domain tail ("ple.com") can match. Only an empty key is skipped.

The index can be swapped at any time (e.g. once contacts finish loading);
until then every handle resolves to itself.
"""

import logging
import threading
from collections import Counter
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from imessage_insights.contacts import EMPTY_NAME_INDEX, ContactsSource, NameIndex, digits_only

logger = logging.getLogger(__name__)

SUFFIX_LENGTH = 7

Matcher = Callable[[str, NameIndex], Optional[str]]


def normalize_handle_key(identifier: str) -> str:
    """
    Normalize a raw handle for index lookup.

    Examples:
        >>> normalize_handle_key("+1 (555) 123-4567")
        '15551234567'
        >>> normalize_handle_key("Alice@Example.COM")
        'alice@example.com'
    """
    if "@" in identifier:
        return identifier.lower()
    return digits_only(identifier)


def match_exact(key: str, index: NameIndex) -> Optional[str]:
    """Match the normalized key itself."""
    return index.get(key)


def match_without_country_code(key: str, index: NameIndex) -> Optional[str]:
    """Match after dropping a leading US country code from >10-digit keys."""
    if len(key) > 10 and key.startswith("1"):
        return index.get(key[1:])
    return None


def match_with_country_code(key: str, index: NameIndex) -> Optional[str]:
    """Match after adding a US country code to 10-digit keys."""
    if len(key) == 10 and key.isdigit():
        return index.get("1" + key)
    return None


def match_suffix(key: str, index: NameIndex) -> Optional[str]:
    """Match the smallest index key ending with the key's last 7 characters."""
    if not key:
        return None
    suffix = key[-SUFFIX_LENGTH:]
    for candidate in index.sorted_keys():
        if candidate.endswith(suffix):
            return index[candidate]
    return None


DEFAULT_MATCHERS: Tuple[Tuple[str, Matcher], ...] = (
    ("exact", match_exact),
    ("strip_country", match_without_country_code),
    ("add_country", match_with_country_code),
    ("suffix", match_suffix),
)


class HandleResolver:
    """
    Resolve raw handles to display names against a swappable NameIndex.

    Thread-safe: the index is replaced atomically and lookups read a single
    reference.
    """

    def __init__(
        self,
        index: Optional[NameIndex] = None,
        matchers: Sequence[Tuple[str, Matcher]] = DEFAULT_MATCHERS,
    ):
        self._index: NameIndex = index if index is not None else EMPTY_NAME_INDEX
        self._ready = index is not None
        self._matchers = tuple(matchers)
        self._lock = threading.Lock()
        self._unmatched: Counter = Counter()

    @property
    def index(self) -> NameIndex:
        """The current name index."""
        return self._index

    @property
    def is_ready(self) -> bool:
        """True once an index has been published."""
        return self._ready

    def update_index(self, index: NameIndex) -> None:
        """Replace the name index (e.g. after contacts load or access changes)."""
        with self._lock:
            self._index = index
            self._ready = True
            self._unmatched.clear()
        logger.info(f"Name index updated ({len(index)} identifiers)")

    def match(self, identifier: str) -> Optional[Tuple[str, str]]:
        """
        Run the matcher chain.

        Returns:
            (matcher name, display name) for the first match, else None.
        """
        index = self._index
        key = normalize_handle_key(identifier)
        if not key:
            return None
        for name, matcher in self._matchers:
            result = matcher(key, index)
            if result is not None:
                return name, result
        return None

    def resolve(self, identifier: str) -> str:
        """
        Resolve a raw identifier to a display name.

        Returns:
            The matched display name, or `identifier` unchanged.
        """
        matched = self.match(identifier)
        if matched is not None:
            return matched[1]

        if self._ready:
            with self._lock:
                self._unmatched[identifier] += 1
            logger.debug(f"Unmatched handle: {identifier} → key: {normalize_handle_key(identifier)}")
        return identifier

    def resolve_many(self, identifiers: Sequence[str]) -> Dict[str, str]:
        """Resolve several identifiers at once."""
        return {identifier: self.resolve(identifier) for identifier in identifiers}

    def unmatched(self) -> List[Tuple[str, int]]:
        """Identifiers that failed to resolve since the last index update."""
        with self._lock:
            return self._unmatched.most_common()


def build_name_index(source: ContactsSource) -> NameIndex:
    """Enumerate a contacts source and index it."""
    return NameIndex.from_cards(source.fetch_cards())


def load_name_index_async(
    source: ContactsSource,
    resolver: HandleResolver,
    executor: Optional[Executor] = None,
) -> "Future[NameIndex]":
    """
    Build the name index off the calling thread and publish it to `resolver`.

    The resolver keeps returning raw identifiers until the future completes.
    A failing source leaves the resolver untouched; the exception is logged
    and kept on the returned future.

    Args:
        source: Contacts source to enumerate.
        resolver: Resolver to update on success.
        executor: Executor to run on; a one-off single-thread pool if None.

    Returns:
        Future resolving to the published NameIndex.
    """
    own_executor = executor is None
    pool = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="contacts")

    def _load() -> NameIndex:
        index = build_name_index(source)
        resolver.update_index(index)
        return index

    future = pool.submit(_load)

    def _report(done: "Future[NameIndex]") -> None:
        error = done.exception()
        if error is not None:
            logger.warning(f"Contacts index load failed: {error}")

    future.add_done_callback(_report)
    if own_executor:
        pool.shutdown(wait=False)
    return future
