from sharepoint_migration.path_mapper import (
    DestinationMapper,
    FolderNameTransform,
    collapse_prefixed_name,
    map_destination_path,
    normalize_key,
    sanitize_destination_path,
    simplify_folder_name,
    to_display_path,
    transform_segment,
)


class TestMapDestinationPath:
    def test_root_folder_collapses_to_prefix_word(self):
        assert map_destination_path('Clients (ETC - Wilco)', 'sub/file.pdf') == 'Clients/sub/file.pdf'

    def test_accepts_backslash_relative_paths(self):
        assert map_destination_path('Clients (ETC - Wilco)', 'sub\\file.pdf') == 'Clients/sub/file.pdf'

    def test_collapsed_name_is_a_fixed_point(self):
        assert map_destination_path('Clients', 'a.pdf') == 'Clients/a.pdf'

    def test_intermediate_folders_are_transformed(self):
        assert map_destination_path('Root', 'Clients (Acme)/x.pdf') == 'Root/Clients/x.pdf'

    def test_file_name_is_never_transformed(self):
        assert map_destination_path('Root', 'Clients (Acme).pdf') == 'Root/Clients (Acme).pdf'

    def test_base_path_is_prepended(self):
        result = map_destination_path('Clients (X)', 'f.pdf', base_path='Migrated/2024')
        assert result == 'Migrated/2024/Clients/f.pdf'

    def test_name_mappings_apply_to_folders(self):
        transform = FolderNameTransform(name_mappings={'Old Name': 'New Name'})
        result = map_destination_path('Root', 'Old Name/f.pdf', transform=transform)
        assert result == 'Root/New Name/f.pdf'


class TestCollapsePrefixedName:
    def test_word_followed_by_punctuation_collapses(self):
        assert collapse_prefixed_name('clients_old') == 'Clients'

    def test_word_inside_longer_word_is_kept(self):
        assert collapse_prefixed_name('ClientServices') == 'ClientServices'

    def test_unrelated_name_is_kept(self):
        assert collapse_prefixed_name('Projects') == 'Projects'

    def test_extra_prefixes_from_transform(self):
        transform = FolderNameTransform(collapse_prefixes=['Vendors'])
        assert transform_segment('Vendors - 2020', transform) == 'Vendors'


class TestFolderNameTransform:
    def test_simplify_truncates_at_parenthesis(self):
        assert simplify_folder_name('Acme Corp (2019)') == 'Acme Corp '
        assert FolderNameTransform(simplify_folders=True).apply('Acme Corp (2019)') == 'Acme Corp'

    def test_simplify_truncates_at_dash(self):
        assert simplify_folder_name('Projects - Archive') == 'Projects'

    def test_remove_pattern(self):
        transform = FolderNameTransform(remove_pattern=r'\d{4}')
        assert transform.apply('Archive 2019') == 'Archive'

    def test_empty_result_falls_back_to_original(self, capsys):
        transform = FolderNameTransform(remove_pattern='.*')
        assert transform_segment('Projects', transform) == 'Projects'
        assert 'keeping original' in capsys.readouterr().out

    def test_invalid_pattern_is_ignored_and_reported_once(self, capsys):
        first = FolderNameTransform(remove_pattern='([unclosed')
        second = FolderNameTransform(remove_pattern='([unclosed')
        assert first.apply('Name') == 'Name'
        assert second.apply('Name') == 'Name'
        assert capsys.readouterr().out.count('Invalid removePattern') == 1

    def test_malformed_mapping_entries_are_skipped(self, capsys):
        transform = FolderNameTransform(name_mappings=['ab', ['a'], ['x', 'y', 'z'], ['Acme', 'ACME']])
        assert transform.name_mappings == [('Acme', 'ACME')]
        assert capsys.readouterr().out.count('Ignoring malformed name mapping') == 3

    def test_non_text_pattern_is_ignored(self, capsys):
        transform = FolderNameTransform(remove_pattern=5)
        assert transform.apply('Archive 5') == 'Archive 5'
        assert 'not a string' in capsys.readouterr().out

    def test_first_mapping_wins(self):
        transform = FolderNameTransform(name_mappings=[['A', 'B'], ['A', 'C']])
        assert transform.apply('A') == 'B'

    def test_from_config_empty_is_none(self):
        assert FolderNameTransform.from_config({}) is None
        assert FolderNameTransform.from_config(None) is None

    def test_from_config_reads_camel_case_keys(self):
        transform = FolderNameTransform.from_config({
            'nameMappings': [{'from': 'A', 'to': 'B'}, {'source': 'C', 'target': 'D'}],
            'simplifyFolders': True,
            'removePattern': 'x',
        })
        assert transform.name_mappings == [('A', 'B'), ('C', 'D')]
        assert transform.simplify_folders is True
        assert transform.remove_pattern == 'x'


class TestSanitizeDestinationPath:
    def test_strips_leading_library_name(self):
        assert sanitize_destination_path('Shared Documents/Migrated/f.pdf') == 'Migrated/f.pdf'

    def test_match_is_case_insensitive(self):
        assert sanitize_destination_path('documents/x.pdf') == 'x.pdf'

    def test_only_one_segment_is_stripped(self):
        assert sanitize_destination_path('Documents/Documents/f.pdf') == 'Documents/f.pdf'

    def test_single_segment_is_kept(self):
        assert sanitize_destination_path('Documents') == 'Documents'

    def test_backslashes_are_normalized(self):
        assert sanitize_destination_path('Shared Documents\\a\\b.pdf') == 'a/b.pdf'

    def test_custom_reserved_names(self):
        assert sanitize_destination_path('Archive/b.pdf', ['Archive']) == 'b.pdf'


class TestDestinationMapper:
    def test_returns_sanitized_and_raw_paths(self):
        mapper = DestinationMapper('Clients (X)', base_path='Shared Documents/Migrated')
        destination, raw = mapper.map('a/f.pdf')
        assert destination == 'Migrated/Clients/a/f.pdf'
        assert raw == 'Shared Documents/Migrated/Clients/a/f.pdf'


class TestKeys:
    def test_normalize_key_is_lowercase_with_backslashes(self):
        assert normalize_key('Clients/Sub/File.PDF') == 'clients\\sub\\file.pdf'

    def test_keys_ignore_case_and_separator(self):
        assert normalize_key('A/b.txt') == normalize_key('a/B.TXT')

    def test_display_path(self):
        assert to_display_path('Clients/sub/file.pdf') == 'Clients\\sub\\file.pdf'
