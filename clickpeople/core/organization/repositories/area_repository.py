"""Area Repository - organization directory used by the approval engine.

Resolves area names/ids to their designated approvers (director, c-level)
and hierarchy roles to the users holding them.
"""
from typing import Optional, Iterable

from core.base_repository import BaseRepository


class AreaRepository(BaseRepository):
    """Repository for areas and the users that run them."""

    _AREA_SELECT = '''
        SELECT a.*,
               d.name as director_name, d.is_active as director_active,
               c.name as c_level_name, c.is_active as c_level_active
        FROM areas a
        LEFT JOIN users d ON d.id = a.director_id
        LEFT JOIN users c ON c.id = a.c_level_id
    '''

    def get_all(self) -> list[dict]:
        """Get all areas with director and c-level names."""
        return self.query_all(self._AREA_SELECT + ' ORDER BY a.name')

    def get_by_id(self, area_id: int) -> Optional[dict]:
        return self.query_one(self._AREA_SELECT + ' WHERE a.id = %s', (area_id,))

    def get_by_name(self, name: str) -> Optional[dict]:
        return self.query_one(self._AREA_SELECT + ' WHERE a.name = %s', (name,))

    def get_names(self, names: Iterable[str]) -> set[str]:
        """Return the subset of `names` that exist as areas."""
        names = list(names)
        if not names:
            return set()
        rows = self.query_all(
            'SELECT name FROM areas WHERE name = ANY(%s)', (names,)
        )
        return {r['name'] for r in rows}

    def get_users_by_min_level(self, min_level: int) -> list[int]:
        """Active users whose hierarchy level meets `min_level`."""
        rows = self.query_all('''
            SELECT id FROM users
            WHERE is_active = TRUE AND hierarchy_level >= %s
            ORDER BY id
        ''', (min_level,))
        return [r['id'] for r in rows]

    def get_users(self, user_ids: Iterable[int]) -> list[dict]:
        user_ids = sorted(set(user_ids))
        if not user_ids:
            return []
        return self.query_all('''
            SELECT id, name, email, hierarchy_level
            FROM users WHERE id = ANY(%s)
            ORDER BY name
        ''', (user_ids,))
