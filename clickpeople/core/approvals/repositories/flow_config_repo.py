"""Repository for the system_config table (versioned JSONB documents)."""

import json
import logging
from core.base_repository import BaseRepository

logger = logging.getLogger('clickpeople.core.approvals.flow_config_repo')

APPROVAL_FLOWS_KEY = 'APPROVAL_FLOWS'


class FlowConfigRepository(BaseRepository):

    def get(self, key=APPROVAL_FLOWS_KEY):
        """Return {key, value, version, updated_by, updated_at} or None."""
        return self.query_one('''
            SELECT key, value, version, updated_by, updated_at
            FROM system_config
            WHERE key = %s
        ''', (key,))

    def save_versioned(self, value, new_version, expected_version, updated_by,
                       key=APPROVAL_FLOWS_KEY):
        """Write `value` only if the stored version is still `expected_version`.

        expected_version=None means nothing was persisted yet. Returns False
        when another writer changed the document in between.
        """
        payload = json.dumps(value)
        if expected_version is None:
            saved = self.execute_guarded('''
                INSERT INTO system_config (key, value, version, updated_by, updated_at)
                VALUES (%s, %s::jsonb, %s, %s, NOW())
                ON CONFLICT (key) DO NOTHING
            ''', (key, payload, new_version, updated_by))
        else:
            saved = self.execute_guarded('''
                UPDATE system_config
                SET value = %s::jsonb, version = %s, updated_by = %s, updated_at = NOW()
                WHERE key = %s AND version = %s
            ''', (payload, new_version, updated_by, key, expected_version))

        if not saved:
            logger.warning(f'Concurrent update of {key} detected (expected version {expected_version})')
        return saved
