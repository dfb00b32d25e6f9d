import json

import pytest

from sharepoint_migration.config import Config, load_config_file
from sharepoint_migration.exceptions import ConfigError

REQUIRED = [
    '--tenant-id', 'tenant',
    '--client-id', 'client',
    '--client-secret', 'secret',
    '--site-url', 'https://contoso.sharepoint.com/sites/Ops',
    '--file-server-path', '/mnt/share/Clients (ETC - Wilco)',
]


def _write_config(tmp_path, data):
    path = tmp_path / 'config.json'
    path.write_text(json.dumps(data), encoding='utf-8')
    return str(path)


class TestPrecedence:
    def test_defaults(self):
        config = Config(REQUIRED, environ={})
        assert config.library_name == 'Documents'
        assert config.collision_policy == 'keep_last'
        assert config.mode == 'batch'
        assert config.max_workers == 1
        assert config.tolerance_seconds == 2.0
        assert config.migrate is False
        assert config.include_can_migrate is False
        assert config.start_date is None

    def test_environment_supplies_secrets(self):
        environ = {
            'SP_TENANT_ID': 'env-tenant',
            'SP_CLIENT_ID': 'env-client',
            'SP_CLIENT_SECRET': 'env-secret',
            'SP_SITE_URL': 'https://contoso.sharepoint.com/sites/Env',
        }
        config = Config(['--file-server-path', '/mnt/share'], environ=environ)
        config.validate()
        assert config.tenant_id == 'env-tenant'
        assert config.client_secret == 'env-secret'
        assert config.site_url == 'https://contoso.sharepoint.com/sites/Env'

    def test_config_file_beats_environment(self, tmp_path):
        path = _write_config(tmp_path, {'tenantId': 'file-tenant', 'libraryName': 'Archive'})
        config = Config(REQUIRED[2:] + ['--config', path], environ={'SP_TENANT_ID': 'env-tenant'})
        assert config.tenant_id == 'file-tenant'
        assert config.library_name == 'Archive'

    def test_command_line_beats_config_file(self, tmp_path):
        path = _write_config(tmp_path, {'libraryName': 'Archive', 'collisionPolicy': 'keep_first'})
        config = Config(REQUIRED + ['--config', path, '--library-name', 'Records'], environ={})
        assert config.library_name == 'Records'
        assert config.collision_policy == 'keep_first'

    def test_lists_from_file_and_flags(self, tmp_path):
        path = _write_config(tmp_path, {'excludePatterns': '*.tmp, Thumbs.db'})
        assert Config(REQUIRED + ['--config', path], environ={}).exclude_patterns == ['*.tmp', 'Thumbs.db']

        config = Config(REQUIRED + ['--exclude-pattern', '*.bak', '--exclude-pattern', '~*'], environ={})
        assert config.exclude_patterns == ['*.bak', '~*']

    def test_folder_transform_flags_merge_with_file(self, tmp_path):
        path = _write_config(tmp_path, {'folderNameTransform': {'nameMappings': {'A': 'B'}}})
        config = Config(REQUIRED + ['--config', path, '--simplify-folders'], environ={})
        assert config.folder_name_transform == {'nameMappings': {'A': 'B'}, 'simplifyFolders': True}

    def test_workers_are_capped(self):
        assert Config(REQUIRED + ['--max-workers', '64'], environ={}).max_workers == 10


class TestDerivedValues:
    def test_root_folder_name_from_source_path(self):
        assert Config(REQUIRED, environ={}).source_root_name == 'Clients (ETC - Wilco)'

    def test_root_folder_name_from_windows_path(self):
        args = REQUIRED[:-1] + ['G:\\shared\\Clients (ETC - Wilco)\\']
        assert Config(args, environ={}).source_root_name == 'Clients (ETC - Wilco)'

    def test_root_folder_override(self):
        config = Config(REQUIRED + ['--root-folder-name', 'Clients'], environ={})
        assert config.source_root_name == 'Clients'

    def test_date_only_end_covers_whole_day(self):
        config = Config(REQUIRED + ['--start-date', '2024-01-01', '--end-date', '2024-01-31'], environ={})
        assert (config.end_date.hour, config.end_date.minute, config.end_date.second) == (23, 59, 59)
        assert config.start_date.hour == 0
        assert config.start_date.tzinfo is not None

    def test_end_datetime_is_kept(self):
        config = Config(REQUIRED + ['--end-date', '2024-01-31T08:30:00Z'], environ={})
        assert config.end_date.hour == 8


class TestValidate:
    def test_valid(self):
        Config(REQUIRED, environ={}).validate()

    def test_missing_required(self):
        with pytest.raises(ConfigError, match='tenantId'):
            Config(REQUIRED[2:], environ={}).validate()

    def test_missing_credential(self):
        args = [a for a in REQUIRED if a not in ('--client-secret', 'secret')]
        with pytest.raises(ConfigError, match='credential'):
            Config(args, environ={}).validate()

    def test_certificate_needs_both_parts(self):
        args = [a for a in REQUIRED if a not in ('--client-secret', 'secret')]
        with pytest.raises(ConfigError):
            Config(args + ['--certificate-thumbprint', 'ABC'], environ={}).validate()

    def test_certificate_replaces_secret(self):
        args = [a for a in REQUIRED if a not in ('--client-secret', 'secret')]
        Config(args + ['--certificate-thumbprint', 'ABC', '--certificate-path', 'key.pem'],
               environ={}).validate()

    def test_site_url_must_be_https(self):
        args = REQUIRED[:6] + ['--site-url', 'http://contoso.sharepoint.com'] + REQUIRED[8:]
        with pytest.raises(ConfigError, match='https'):
            Config(args, environ={}).validate()

    def test_start_after_end(self):
        config = Config(REQUIRED + ['--start-date', '2024-02-01', '--end-date', '2024-01-01'], environ={})
        with pytest.raises(ConfigError):
            config.validate()

    def test_unknown_lookup_strategy(self):
        config = Config(REQUIRED + ['--lookup-strategy', 'guess'], environ={})
        with pytest.raises(ConfigError, match='lookup strategy'):
            config.validate()

    def test_negative_stop_after(self):
        with pytest.raises(ConfigError):
            Config(REQUIRED + ['--stop-after', '-1'], environ={}).validate()

    def test_invalid_date(self):
        with pytest.raises(ConfigError):
            Config(REQUIRED + ['--start-date', 'yesterday'], environ={})

    @pytest.mark.parametrize('mappings', [[['a']], [['a', 'b', 'c']], ['ab'], [{'from': 'a'}], [7]])
    def test_malformed_name_mapping_entry(self, tmp_path, mappings):
        path = _write_config(tmp_path, {'folderNameTransform': {'nameMappings': mappings}})
        config = Config(REQUIRED + ['--config', path], environ={})
        with pytest.raises(ConfigError, match='nameMappings'):
            config.validate()

    def test_well_formed_name_mappings(self, tmp_path):
        path = _write_config(tmp_path, {'folderNameTransform': {
            'nameMappings': [['Acme', 'ACME'], {'from': 'Old', 'to': 'New'}],
        }})
        Config(REQUIRED + ['--config', path], environ={}).validate()

    def test_remove_pattern_must_be_text(self, tmp_path):
        path = _write_config(tmp_path, {'folderNameTransform': {'removePattern': 5}})
        config = Config(REQUIRED + ['--config', path], environ={})
        with pytest.raises(ConfigError, match='removePattern'):
            config.validate()

    def test_collapse_prefixes_must_be_a_list(self, tmp_path):
        path = _write_config(tmp_path, {'folderNameTransform': {'collapsePrefixes': 'Vendors'}})
        config = Config(REQUIRED + ['--config', path], environ={})
        with pytest.raises(ConfigError, match='collapsePrefixes'):
            config.validate()


class TestLoadConfigFile:
    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config_file(str(tmp_path / 'missing.json'))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / 'config.json'
        path.write_text('{not json', encoding='utf-8')
        with pytest.raises(ConfigError):
            load_config_file(str(path))

    def test_must_be_object(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config_file(_write_config(tmp_path, ['a']))
