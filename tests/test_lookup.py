import pytest

from sharepoint_migration.lookup import RemoteLookup


class TestRemoteLookup:
    def test_direct_hit(self, store, context):
        store.add_file('Clients/Acme/contract.pdf')
        info = RemoteLookup(store, context).resolve('Clients/Acme/contract.pdf')
        assert info.resolved_url == 'Clients/Acme/contract.pdf'
        assert store.get_calls == ['Clients/Acme/contract.pdf']
        assert context.stats['lookup_hit_direct'] == 1

    def test_library_prefixed_candidate(self, store, context):
        store.add_file('Documents/Clients/a.pdf')
        info = RemoteLookup(store, context).resolve('Clients/a.pdf')
        assert info.resolved_url == 'Documents/Clients/a.pdf'
        assert context.stats['lookup_hit_library'] == 1

    def test_alias_candidate(self, store, context):
        store.add_file('Shared Documents/Clients/a.pdf')
        info = RemoteLookup(store, context).resolve('Clients/a.pdf')
        assert info.resolved_url == 'Shared Documents/Clients/a.pdf'
        assert context.stats['lookup_hit_aliases'] == 1

    def test_raw_candidate(self, store, context):
        store.add_file('Archive/Clients/a.pdf')
        info = RemoteLookup(store, context).resolve('Clients/a.pdf', raw_path='Archive\\Clients\\a.pdf')
        assert info.resolved_url == 'Archive/Clients/a.pdf'
        assert context.stats['lookup_hit_raw'] == 1

    def test_candidates_tried_in_order_without_duplicates(self, store):
        RemoteLookup(store).resolve('Clients/a.pdf', raw_path='Clients/a.pdf')
        assert store.get_calls == [
            'Clients/a.pdf',
            'Documents/Clients/a.pdf',
            'Shared Documents/Clients/a.pdf',
        ]

    def test_not_found(self, store, context):
        assert RemoteLookup(store, context).resolve('Clients/missing.pdf') is None
        assert context.stats['lookup_not_found'] == 1

    def test_candidate_errors_fall_through(self, store, context):
        store.add_file('Documents/Clients/a.pdf')
        store.failing_lookups.add('clients/a.pdf')
        info = RemoteLookup(store, context).resolve('Clients/a.pdf')
        assert info.resolved_url == 'Documents/Clients/a.pdf'
        assert context.stats['lookup_candidate_errors'] == 1

    def test_navigate_matches_name_case_insensitively(self, store, context):
        store.add_file('Clients/Report.PDF', size=7)
        lookup = RemoteLookup(store, context, strategies=['navigate'])
        info = lookup.resolve('Clients/report.pdf')
        assert info.size == 7
        assert info.name == 'Report.PDF'
        assert context.stats['lookup_hit_navigate'] == 1

    def test_navigate_missing_parent(self, store):
        lookup = RemoteLookup(store, strategies=['navigate'])
        assert lookup.resolve('Nowhere/report.pdf') is None

    def test_custom_strategy(self, store, context):
        store.add_file('Legacy/a.pdf')

        def legacy(path, raw_path):
            return ['Legacy/' + path.rsplit('/', 1)[-1]]

        lookup = RemoteLookup(store, context, strategies=['direct', legacy])
        info = lookup.resolve('Clients/a.pdf')
        assert info.resolved_url == 'Legacy/a.pdf'
        assert context.stats['lookup_hit_legacy'] == 1

    def test_failing_custom_strategy_is_skipped(self, store, context):
        store.add_file('Clients/a.pdf')

        def broken(path, raw_path):
            raise RuntimeError('boom')

        lookup = RemoteLookup(store, context, strategies=[broken, 'direct'])
        assert lookup.resolve('Clients/a.pdf') is not None
        assert context.stats['lookup_candidate_errors'] == 1

    def test_unknown_strategy_rejected(self, store):
        with pytest.raises(ValueError):
            RemoteLookup(store, strategies=['guess'])

    def test_empty_aliases(self, store):
        RemoteLookup(store, library_aliases=[], strategies=['aliases']).resolve('a.pdf')
        assert store.get_calls == []
