# -*- coding: utf-8 -*-
"""
Per-file remote lookup with ordered candidate fallbacks.

Files are resolved one at a time instead of listing the whole library, which
stays clear of the 5000-item list view threshold and works for libraries of
any size. Because the folder a library stores its files in can differ from
its display name (e.g. 'Documents' is stored as 'Shared Documents'), several
candidate paths are tried in order:

    1. direct    - the computed destination path
    2. library   - prefixed with the library display name
    3. aliases   - prefixed with each configured library alias
    4. raw       - the destination path before library segments were stripped
    5. navigate  - list the parent folder and match the file name

The strategy list is configurable and accepts custom callables.
"""

from .models import RemoteFileInfo
from .utils import is_debug_enabled

DEFAULT_STRATEGIES = ('direct', 'library', 'aliases', 'raw', 'navigate')
DEFAULT_LIBRARY_ALIASES = ('Shared Documents', 'Documents')


def _direct_candidates(lookup, path, raw_path):
    return [path]


def _library_candidates(lookup, path, raw_path):
    name = lookup.store.library_display_name
    return [f"{name}/{path}"] if name else []


def _alias_candidates(lookup, path, raw_path):
    return [f"{alias}/{path}" for alias in lookup.library_aliases]


def _raw_candidates(lookup, path, raw_path):
    return [raw_path] if raw_path else []


PATH_STRATEGIES = {
    'direct': _direct_candidates,
    'library': _library_candidates,
    'aliases': _alias_candidates,
    'raw': _raw_candidates,
}


class RemoteLookup:
    """
    Resolve destination paths against a RemoteStore.

    Args:
        store (RemoteStore): Destination store
        context (RunContext): Optional, receives lookup counters
        strategies (list): Strategy names from DEFAULT_STRATEGIES and/or
            callables ``fn(path, raw_path) -> list of candidate paths``
        library_aliases (list): Prefixes tried by the 'aliases' strategy

    Example:
        lookup = RemoteLookup(store, context, strategies=['direct', 'navigate'])
        info = lookup.resolve('Clients/Acme/contract.pdf')
    """

    def __init__(self, store, context=None, strategies=None, library_aliases=None):
        self.store = store
        self.context = context
        self.strategies = list(strategies or DEFAULT_STRATEGIES)
        self.library_aliases = list(DEFAULT_LIBRARY_ALIASES if library_aliases is None else library_aliases)

        for strategy in self.strategies:
            if not callable(strategy) and strategy not in PATH_STRATEGIES and strategy != 'navigate':
                raise ValueError(f"Unknown lookup strategy: {strategy}")

    def _count(self, key):
        if self.context is not None:
            self.context.stats.increment(key)

    def resolve(self, destination_path, raw_path=None):
        """
        Find the remote file for a destination path.

        Args:
            destination_path (str): Library-relative path from the path mapper
            raw_path (str): Optional un-sanitized destination path

        Returns:
            RemoteFileInfo: Metadata of the first candidate that exists
            None: No candidate exists (the file is missing at the destination)

        Note:
            Candidate failures are never raised: every error is logged in
            debug mode and the next candidate is tried.
        """
        path = destination_path.strip('/')
        if raw_path:
            raw_path = raw_path.replace('\\', '/').strip('/')
        attempted = set()

        for strategy in self.strategies:
            if strategy == 'navigate':
                info = self._navigate(path)
                if info is not None:
                    self._count('lookup_hit_navigate')
                    return info
                continue

            if callable(strategy):
                label = getattr(strategy, '__name__', 'custom')
                try:
                    candidates = strategy(path, raw_path)
                except Exception as e:
                    self._count('lookup_candidate_errors')
                    if is_debug_enabled():
                        print(f"[DEBUG] Lookup strategy {label} failed for {path}: {e}")
                    continue
            else:
                label = strategy
                candidates = PATH_STRATEGIES[strategy](self, path, raw_path)

            for candidate in candidates or []:
                candidate = candidate.replace('\\', '/').strip('/')
                if not candidate or candidate.lower() in attempted:
                    continue
                attempted.add(candidate.lower())

                info = self._try_candidate(candidate)
                if info is not None:
                    self._count(f'lookup_hit_{label}')
                    return info

        self._count('lookup_not_found')
        if is_debug_enabled():
            print(f"[DEBUG] Not found at destination after {len(attempted)} candidate(s): {path}")
        return None

    def _try_candidate(self, candidate):
        try:
            info = self.store.get_file(candidate)
        except Exception as e:
            self._count('lookup_candidate_errors')
            if is_debug_enabled():
                print(f"[DEBUG] Lookup candidate failed: {candidate} ({str(e)[:200]})")
            return None
        if is_debug_enabled():
            state = 'found' if info is not None else 'not found'
            print(f"[DEBUG] Lookup candidate {state}: {candidate}")
        return info

    def _navigate(self, path):
        """Last resort: list the parent folder and pick the file by name."""
        if '/' in path:
            parent, name = path.rsplit('/', 1)
        else:
            parent, name = '', path

        try:
            children = self.store.list_folder(parent)
        except Exception as e:
            self._count('lookup_candidate_errors')
            if is_debug_enabled():
                print(f"[DEBUG] Folder navigation failed for {parent or '/'}: {str(e)[:200]}")
            return None

        if not children:
            return None

        wanted = name.lower()
        for child in children:
            if child.get('is_folder') or (child.get('name') or '').lower() != wanted:
                continue
            child_path = f"{parent}/{child['name']}" if parent else child['name']
            try:
                # Fetch by exact name so the result carries full metadata
                info = self.store.get_file(child_path)
            except Exception as e:
                self._count('lookup_candidate_errors')
                if is_debug_enabled():
                    print(f"[DEBUG] Lookup by name failed: {child_path} ({str(e)[:200]})")
                info = None
            if info is not None:
                return info
            return _info_from_listing(child_path, child)
        return None


def _info_from_listing(path, child):
    return RemoteFileInfo(
        resolved_url=path,
        size=child.get('size'),
        modified_at=child.get('modified_at'),
        name=child.get('name'),
        item_id=child.get('id'),
    )
