"""Tests for ledger.services.partners — registry, terms validation, API keys."""
import pytest

from ledger.errors import ConflictError, NotFoundError, ValidationError
from ledger.services import audit
from ledger.services.partners import (
    authenticate, create_partner, get_partner, get_terms, hash_api_key, list_partners,
    rotate_api_key, update_partner,
)

KEY = 'a' * 40


class TestCreatePartner:

    def test_stores_hash_not_key(self):
        partner = create_partner('Boardy', KEY, placement_terms={'flat_fee': 15000})
        assert partner.api_key_hash == hash_api_key(KEY)
        assert KEY not in partner.api_key_hash
        assert partner.is_active is True
        assert partner.placement_terms == {'flat_fee': 15000}

    def test_audited_without_key(self):
        partner = create_partner('Boardy', KEY)
        entry = audit.find_by_entity('PARTNER', partner.id)[0]
        assert entry.event_type == 'CREATED'
        assert entry.source == 'INTERNAL_API'
        assert 'api_key' not in entry.new_value

    def test_duplicate_name_conflicts(self):
        create_partner('Boardy', KEY)
        with pytest.raises(ConflictError):
            create_partner('Boardy', 'b' * 40)

    def test_short_key_rejected(self):
        with pytest.raises(ValidationError, match='at least 32'):
            create_partner('Boardy', 'short')

    def test_blank_name_rejected(self):
        with pytest.raises(ValidationError):
            create_partner('   ', KEY)

    @pytest.mark.parametrize('terms', [
        {'attribution_window_months': -1},
        {'attribution_window_months': 'twelve'},
        {'attribution_window_months': True},
        {'flat_fee': [1]},
        {'flat_fee': 'abc'},
        {'flat_fee': -100},
        {'flat_fee': 'NaN'},
        {'fee_percentage': 'twenty'},
        'not-a-dict',
    ])
    def test_bad_terms_rejected(self, terms):
        with pytest.raises(ValidationError):
            create_partner('Boardy', KEY, placement_terms=terms)

    def test_zero_window_allowed(self):
        partner = create_partner('Boardy', KEY, placement_terms={'attribution_window_months': 0})
        assert get_terms(partner) == {'attribution_window_months': 0}

    def test_numeric_string_fee_allowed(self):
        partner = create_partner('Boardy', KEY, placement_terms={'flat_fee': '2500.25'})
        assert get_terms(partner) == {'flat_fee': '2500.25'}


class TestUpdatePartner:

    def test_partial_update(self):
        partner = create_partner('Boardy', KEY, webhook_url='https://old.example/hook')
        updated = update_partner(partner.id, webhook_url='https://new.example/hook')
        assert updated.webhook_url == 'https://new.example/hook'
        assert updated.name == 'Boardy'

    def test_deactivate_blocks_auth(self):
        partner = create_partner('Boardy', KEY)
        update_partner(partner.id, is_active=False)
        assert authenticate(KEY) is None

    def test_audit_has_old_and_new(self):
        partner = create_partner('Boardy', KEY)
        update_partner(partner.id, name='Boardy AI')
        entry = [e for e in audit.find_by_entity('PARTNER', partner.id) if e.event_type == 'UPDATED'][0]
        assert entry.old_value['name'] == 'Boardy'
        assert entry.new_value['name'] == 'Boardy AI'

    def test_rename_to_taken_name_conflicts(self):
        create_partner('Boardy', KEY)
        other = create_partner('Harbor', 'b' * 40)
        with pytest.raises(ConflictError):
            update_partner(other.id, name='Boardy')

    def test_unknown_partner(self):
        with pytest.raises(NotFoundError):
            update_partner('missing', name='x')

    def test_unparseable_fee_rejected_and_terms_kept(self):
        partner = create_partner('Boardy', KEY, placement_terms={'flat_fee': 15000})
        with pytest.raises(ValidationError, match='flat_fee'):
            update_partner(partner.id, placement_terms={'flat_fee': 'abc'})
        assert get_partner(partner.id).placement_terms == {'flat_fee': 15000}


class TestApiKeys:

    def test_authenticate(self):
        partner = create_partner('Boardy', KEY)
        assert authenticate(KEY).id == partner.id
        assert authenticate('b' * 40) is None
        assert authenticate('') is None

    def test_rotation_invalidates_old_key(self):
        partner = create_partner('Boardy', KEY)
        new_key = rotate_api_key(partner.id)

        assert new_key != KEY
        assert len(new_key) >= 32
        assert authenticate(KEY) is None
        assert authenticate(new_key).id == partner.id

    def test_rotation_unknown_partner(self):
        with pytest.raises(NotFoundError):
            rotate_api_key('missing')


class TestQueries:

    def test_list_sorted_by_name(self):
        create_partner('Zeta', KEY)
        create_partner('Alpha', 'b' * 40)
        assert [p.name for p in list_partners()] == ['Alpha', 'Zeta']

    def test_get_unknown(self):
        with pytest.raises(NotFoundError):
            get_partner('missing')

    def test_terms_never_none(self):
        partner = create_partner('Boardy', KEY)
        assert get_terms(partner) == {}
        assert get_terms(None) == {}
