# -*- coding: utf-8 -*-
"""
Destination path mapping for SharePoint migration.

This module turns a path relative to the file server root into the path a
file will have inside the destination document library. It never raises:
every edge case falls back to the original value with a logged warning.

Example:
    >>> map_destination_path('Clients (ETC - Wilco)', 'sub/file.pdf')
    'Clients/sub/file.pdf'
"""

import re
from .utils import is_debug_enabled

# Folder names starting with one of these words collapse to the bare word
DEFAULT_COLLAPSE_PREFIXES = ('Clients',)

# Library names that must never appear as the first segment of a destination path
DEFAULT_RESERVED_LIBRARY_NAMES = ('Shared Documents', 'Documents')

# Truncation points for the "simplify" rule
_SIMPLIFY_DELIMITERS = ('(', ' -')

# Invalid removePattern values already reported (warn once per pattern)
_reported_patterns = set()


class FolderNameTransform:
    """
    Folder name transformation rules from the 'folderNameTransform' config object.

    Args:
        name_mappings (dict or list): Exact-match substitutions. A dict keeps
            insertion order; a list may hold {'from': ..., 'to': ...} objects
            or [from, to] pairs. First match wins.
        simplify_folders (bool): Truncate names at the first '(' or ' -'
        remove_pattern (str): Regular expression whose matches are removed
        collapse_prefixes (list): Extra prefix words for the collapse rule
    """

    def __init__(self, name_mappings=None, simplify_folders=False, remove_pattern=None,
                 collapse_prefixes=None):
        self.name_mappings = _normalize_mappings(name_mappings)
        self.simplify_folders = bool(simplify_folders)
        self.remove_pattern = remove_pattern or None
        self.collapse_prefixes = list(collapse_prefixes or [])
        self._compiled_pattern = _compile_pattern(self.remove_pattern)

    @classmethod
    def from_config(cls, data):
        """
        Build a transform from the camelCase config object.

        Returns:
            FolderNameTransform: Transform, or None if data is empty
        """
        if not data:
            return None
        return cls(
            name_mappings=data.get('nameMappings'),
            simplify_folders=data.get('simplifyFolders', False),
            remove_pattern=data.get('removePattern'),
            collapse_prefixes=data.get('collapsePrefixes'),
        )

    def apply(self, segment):
        """Apply mappings, then simplify, then pattern removal, then trimming."""
        value = segment
        for source_name, target_name in self.name_mappings:
            if value == source_name:
                value = target_name
                break

        if self.simplify_folders:
            value = simplify_folder_name(value)

        if self._compiled_pattern is not None:
            value = self._compiled_pattern.sub('', value)

        return value.strip()


def _normalize_mappings(name_mappings):
    """Convert the supported nameMappings shapes into an ordered list of pairs."""
    if not name_mappings:
        return []
    if isinstance(name_mappings, dict):
        return [(str(k), str(v)) for k, v in name_mappings.items()]

    pairs = []
    for entry in name_mappings:
        if isinstance(entry, dict):
            source_name = entry.get('from', entry.get('source'))
            target_name = entry.get('to', entry.get('target'))
        elif isinstance(entry, (list, tuple)) and len(entry) == 2:
            source_name, target_name = entry
        else:
            source_name = target_name = None
        if source_name is None or target_name is None:
            print(f"[!] Ignoring malformed name mapping: {entry}")
            continue
        pairs.append((str(source_name), str(target_name)))
    return pairs


def _compile_pattern(pattern):
    if not pattern:
        return None
    if not isinstance(pattern, str):
        print(f"[!] Invalid removePattern {pattern!r} ignored: not a string")
        return None
    try:
        return re.compile(pattern)
    except re.error as e:
        if pattern not in _reported_patterns:
            _reported_patterns.add(pattern)
            print(f"[!] Invalid removePattern '{pattern}' ignored: {e}")
        return None


def simplify_folder_name(name):
    """
    Truncate a folder name at the first '(' or ' -' delimiter.

    Examples:
        >>> simplify_folder_name('Acme Corp (2019)')
        'Acme Corp '
        >>> simplify_folder_name('Projects - Archive')
        'Projects'
    """
    cut = len(name)
    for delimiter in _SIMPLIFY_DELIMITERS:
        index = name.find(delimiter)
        if index != -1 and index < cut:
            cut = index
    return name[:cut]


def collapse_prefixed_name(segment, prefixes=DEFAULT_COLLAPSE_PREFIXES):
    """
    Collapse a segment starting with a reserved prefix word to the bare word.

    The word must be followed by the end of the name or a non-alphanumeric
    character, so 'Clients (ETC - Wilco)' and 'Clients_old' collapse to
    'Clients' while 'ClientServices' is left alone. Collapsing is a fixed
    point: 'Clients' maps to 'Clients'.
    """
    lowered = segment.lower()
    for word in prefixes:
        word_lower = word.lower()
        if not lowered.startswith(word_lower):
            continue
        rest = segment[len(word):]
        if not rest or not rest[0].isalnum():
            return word
    return segment


def transform_segment(segment, transform=None):
    """
    Transform one folder segment, falling back to the original when the result is empty.

    Args:
        segment (str): Original folder name
        transform (FolderNameTransform): Optional configured rules

    Returns:
        str: Transformed folder name (never empty for a non-empty input)
    """
    prefixes = DEFAULT_COLLAPSE_PREFIXES
    if transform is not None and transform.collapse_prefixes:
        prefixes = tuple(DEFAULT_COLLAPSE_PREFIXES) + tuple(transform.collapse_prefixes)

    value = collapse_prefixed_name(segment, prefixes)
    if transform is not None:
        value = transform.apply(value)

    if not value or not value.strip():
        print(f"[!] Folder name '{segment}' transformed to an empty value, keeping original")
        return segment

    if is_debug_enabled() and value != segment:
        print(f"[DEBUG] Folder renamed: '{segment}' -> '{value}'")
    return value


def split_path(path):
    """Split a path with either separator into non-empty segments."""
    return [part for part in path.replace('\\', '/').split('/') if part]


def sanitize_destination_path(path, reserved_names=DEFAULT_RESERVED_LIBRARY_NAMES):
    """
    Strip a leading library-name segment from a destination path.

    A base path configured as 'Shared Documents/Migrated' would otherwise
    nest the migrated tree inside a folder called 'Shared Documents' within
    the library.

    Args:
        path (str): Destination path with either separator
        reserved_names (iterable): Library names to strip (case-insensitive)

    Returns:
        str: Forward-slash path without a leading reserved segment
    """
    segments = split_path(path)
    reserved = {name.lower() for name in reserved_names if name}
    if len(segments) > 1 and segments[0].lower() in reserved:
        if is_debug_enabled():
            print(f"[DEBUG] Stripped leading library segment '{segments[0]}' from {path}")
        segments = segments[1:]
    return '/'.join(segments)


def map_destination_path(source_root_name, relative_path, base_path=None, transform=None):
    """
    Map a file's path relative to the source root to its library-relative destination path.

    Args:
        source_root_name (str): Name of the source root folder (last segment
            of the file server path, or the configured override)
        relative_path (str): File path relative to the source root
        base_path (str): Optional destination prefix (e.g. 'Migrated/2024')
        transform (FolderNameTransform): Optional folder name rules

    Returns:
        str: Forward-slash destination path, e.g. 'Migrated/Clients/sub/file.pdf'

    Note:
        The transform applies to the root folder and every intermediate
        folder. The file name is kept unchanged.
    """
    segments = []
    if base_path:
        segments.extend(split_path(base_path))

    if source_root_name:
        segments.append(transform_segment(source_root_name, transform))

    relative_segments = split_path(relative_path)
    if relative_segments:
        folders, file_name = relative_segments[:-1], relative_segments[-1]
        segments.extend(transform_segment(folder, transform) for folder in folders)
        segments.append(file_name)

    return '/'.join(segments)


def normalize_key(path):
    """Lower-cased, backslash-separated key used for case/separator-insensitive lookups."""
    return path.replace('/', '\\').lower()


def to_display_path(path):
    """Backslash form of a destination path."""
    return path.replace('/', '\\')


class DestinationMapper:
    """
    Configured mapping from source-relative paths to destination paths.

    Args:
        source_root_name (str): Destination root folder name before transformation
        base_path (str): Optional destination prefix
        transform (FolderNameTransform): Optional folder name rules
        reserved_names (iterable): Library names stripped from the front of the result
    """

    def __init__(self, source_root_name, base_path=None, transform=None,
                 reserved_names=DEFAULT_RESERVED_LIBRARY_NAMES):
        self.source_root_name = source_root_name
        self.base_path = base_path
        self.transform = transform
        self.reserved_names = tuple(reserved_names)

    def map(self, relative_path):
        """
        Map one file.

        Returns:
            tuple: (destination_path, raw_destination_path) where the raw path
            is the value before leading library segments were stripped
        """
        raw = map_destination_path(self.source_root_name, relative_path,
                                   self.base_path, self.transform)
        return sanitize_destination_path(raw, self.reserved_names), raw
