import csv
import json
import os

import pytest

import main
from sharepoint_migration.config import Config
from sharepoint_migration.reporting import (
    COMPARISON_REPORT_NAME,
    EVENT_LOG_NAME,
    MIGRATION_MANIFEST_NAME,
    RUN_SUMMARY_NAME,
)
from sharepoint_migration.thread_utils import restore_original_print


@pytest.fixture(autouse=True)
def _restore_print():
    yield
    restore_original_print()


@pytest.fixture()
def share(tmp_path):
    root = tmp_path / 'Clients (ETC - Wilco)'
    (root / 'sub').mkdir(parents=True)
    (root / 'sub' / 'file.pdf').write_bytes(b'pdf-bytes')
    (root / 'top.txt').write_bytes(b'text')
    return root


def _config(share, tmp_path, *extra):
    argv = [
        '--tenant-id', 'tenant',
        '--client-id', 'client',
        '--client-secret', 'secret',
        '--site-url', 'https://contoso.sharepoint.com/sites/Ops',
        '--file-server-path', str(share),
        '--output-directory', str(tmp_path / 'reports'),
        '--yes',
        *extra,
    ]
    config = Config(argv, environ={})
    config.validate()
    return config


def _run_folder(tmp_path):
    folders = sorted(os.listdir(tmp_path / 'reports'))
    return tmp_path / 'reports' / folders[-1]


def _events(run_folder):
    with open(run_folder / EVENT_LOG_NAME, encoding='utf-8') as f:
        return [json.loads(line)['event'] for line in f]


class TestRun:
    def test_dry_run_writes_all_outputs(self, share, tmp_path, store):
        exit_code = main.run(_config(share, tmp_path), store)

        assert exit_code == main.EXIT_SUCCESS
        assert store.uploads == []
        run_folder = _run_folder(tmp_path)
        assert run_folder.name.startswith('migration_')
        for name in (COMPARISON_REPORT_NAME, MIGRATION_MANIFEST_NAME, RUN_SUMMARY_NAME, EVENT_LOG_NAME):
            assert (run_folder / name).exists()

        with open(run_folder / MIGRATION_MANIFEST_NAME, newline='', encoding='utf-8-sig') as f:
            manifest = list(csv.DictReader(f))
        assert sorted(row['DestinationPath'] for row in manifest) == ['Clients\\sub\\file.pdf', 'Clients\\top.txt']
        urls = {row['DestinationPath']: row['DestinationUrl'] for row in manifest}
        assert urls['Clients\\top.txt'] == store.library_url + '/Clients/top.txt'

        events = _events(run_folder)
        assert events[0] == 'run_start'
        assert events.index('scan_complete') < events.index('run_summary')

    def test_migrate_uploads_missing_files(self, share, tmp_path, store):
        exit_code = main.run(_config(share, tmp_path, '--migrate'), store)

        assert exit_code == main.EXIT_SUCCESS
        assert sorted(target for _, target, _ in store.uploads) == ['Clients/sub/file.pdf', 'Clients/top.txt']
        summary = (_run_folder(tmp_path) / RUN_SUMMARY_NAME).read_text(encoding='utf-8')
        assert 'Run state:                   completed' in summary

    def test_rerun_is_identical(self, share, tmp_path, store):
        main.run(_config(share, tmp_path, '--migrate'), store)
        assert main.run(_config(share, tmp_path, '--migrate'), store) == main.EXIT_SUCCESS
        assert len(store.uploads) == 2

        with open(_run_folder(tmp_path) / COMPARISON_REPORT_NAME, newline='', encoding='utf-8-sig') as f:
            statuses = [row['Status'] for row in csv.DictReader(f)]
        assert statuses == ['Identical', 'Identical']

    def test_upload_failures_exit_code(self, share, tmp_path, store):
        store.failing_uploads.add('clients/top.txt')
        assert main.run(_config(share, tmp_path, '--migrate'), store) == main.EXIT_UPLOAD_FAILURES

    def test_fail_fast_exit_code(self, share, tmp_path, store):
        store.failing_uploads.update({'clients/top.txt', 'clients/sub/file.pdf'})
        exit_code = main.run(_config(share, tmp_path, '--migrate', '--fail-fast'), store)
        assert exit_code == main.EXIT_FAIL_FAST
        assert 'fail_fast_triggered' in _events(_run_folder(tmp_path))

    def test_collision_error_is_fatal(self, share, tmp_path, store):
        (share / 'Sub').mkdir(exist_ok=True)
        (share / 'Sub' / 'FILE.pdf').write_bytes(b'other')
        if len(os.listdir(share)) < 3:
            pytest.skip('case-insensitive file system')
        exit_code = main.run(_config(share, tmp_path, '--collision-policy', 'error'), store)
        assert exit_code == main.EXIT_FATAL

    def test_streaming_mode(self, share, tmp_path, store):
        exit_code = main.run(_config(share, tmp_path, '--migrate', '--mode', 'streaming'), store)
        assert exit_code == main.EXIT_SUCCESS
        assert len(store.uploads) == 2
        assert 'scan_complete' in _events(_run_folder(tmp_path))

    def test_missing_source_is_fatal(self, tmp_path, store):
        assert main.run(_config(tmp_path / 'missing', tmp_path), store) == main.EXIT_FATAL


class TestHelpers:
    def test_run_folders_never_collide(self, tmp_path):
        first = main.create_run_folder(str(tmp_path))
        second = main.create_run_folder(str(tmp_path))
        assert first != second
        assert os.path.isdir(first) and os.path.isdir(second)

    def test_reserved_names_include_library_names(self, share, tmp_path, store):
        names = main.reserved_library_names(_config(share, tmp_path, '--library-name', 'Records'), store)
        assert names == ['Shared Documents', 'Documents', 'Records']

    def test_confirm_declines_without_input(self, monkeypatch):
        def no_input(prompt):
            raise EOFError

        monkeypatch.setattr('builtins.input', no_input)
        assert main.confirm_large_batch(900) is False

    def test_confirm_accepts_yes(self, monkeypatch):
        monkeypatch.setattr('builtins.input', lambda prompt: 'Y')
        assert main.confirm_large_batch(900) is True


class TestMain:
    def test_configuration_error_exit_code(self, monkeypatch, tmp_path):
        for name in ('SP_TENANT_ID', 'SP_CLIENT_ID', 'SP_CLIENT_SECRET', 'SP_SITE_URL',
                     'SP_CERT_THUMBPRINT', 'SP_CERT_PATH'):
            monkeypatch.delenv(name, raising=False)
        monkeypatch.chdir(tmp_path)
        assert main.main([]) == main.EXIT_FATAL

    def test_malformed_folder_transform_exit_code(self, monkeypatch, tmp_path, share):
        config_path = tmp_path / 'config.json'
        config_path.write_text(json.dumps({'folderNameTransform': {'nameMappings': [['a', 'b', 'c']]}}),
                               encoding='utf-8')
        monkeypatch.chdir(tmp_path)
        exit_code = main.main([
            '--tenant-id', 'tenant', '--client-id', 'client', '--client-secret', 'secret',
            '--site-url', 'https://contoso.sharepoint.com/sites/Ops',
            '--file-server-path', str(share), '--config', str(config_path),
        ])
        assert exit_code == main.EXIT_FATAL
