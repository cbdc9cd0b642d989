import re

import pytest

from greenquest.config import PROJECT_ROOT
from greenquest.schemas import ProfileUpdate

WRITE_METHODS = {'write', 'create', 'update', 'delete'}


@pytest.fixture(scope='module')
def rules():
    return (PROJECT_ROOT / 'firestore.rules').read_text()


def _allow_statements(rules_text):
    """(methods, condition) for every allow statement in the file"""
    statements = []
    for match in re.finditer(r'allow\s+([\w,\s]+?):\s*if\s+(.*?);', rules_text, re.DOTALL):
        methods = {m.strip() for m in match.group(1).split(',')}
        condition = ' '.join(match.group(2).split())
        statements.append((methods, condition))
    return statements


def _block(rules_text, path):
    start = rules_text.index(f'match /{path} {{')
    depth = 0
    for index in range(rules_text.index('{', start + len(f'match /{path}')), len(rules_text)):
        if rules_text[index] == '{':
            depth += 1
        elif rules_text[index] == '}':
            depth -= 1
            if depth == 0:
                return rules_text[start:index + 1]
    raise AssertionError(f'Unclosed block for {path}')


class TestFirestoreRules:

    def test_only_profile_update_is_client_writable(self, rules):
        writable = [
            (methods, condition) for methods, condition in _allow_statements(rules)
            if methods & WRITE_METHODS and condition != 'false'
        ]

        assert len(writable) == 1
        methods, condition = writable[0]
        assert methods == {'update'}
        assert 'request.auth.uid == userId' in condition
        assert 'affectedKeys()' in condition

    def test_profile_update_matches_profile_fields(self, rules):
        users = _block(rules, 'users/{userId}')
        allowed = re.search(r'\.hasOnly\(\[(.*?)\]\)', users, re.DOTALL).group(1)
        keys = {key.strip().strip("'") for key in allowed.split(',')}

        assert keys == set(ProfileUpdate.model_fields) | {'updated_at'}
        for protected in ('points', 'level', 'carbon_saved', 'email'):
            assert protected not in keys

    @pytest.mark.parametrize('path', [
        'activities/{activityId}',
        'posts/{postId}',
        'marketplace/{listingId}',
        'chats/{chatId}',
        'messages/{messageId}',
    ])
    def test_backend_owned_collections_deny_writes(self, rules, path):
        block = _block(rules, path)

        assert 'allow write: if false;' in block

    def test_listing_status_and_chat_members_not_client_writable(self, rules):
        for path in ('marketplace/{listingId}', 'chats/{chatId}'):
            for methods, condition in _allow_statements(_block(rules, path)):
                if methods & WRITE_METHODS:
                    assert condition == 'false'
