"""Provider Repository - the people whose contracts approvals change."""
from decimal import Decimal

from core.base_repository import BaseRepository


class ProviderRepository(BaseRepository):

    def deactivate(self, provider_id: int) -> bool:
        """Mark the provider inactive. False when no such provider."""
        return self.execute_guarded('''
            UPDATE providers SET is_active = FALSE, updated_at = NOW()
            WHERE id = %s
        ''', (provider_id,))

    def update_salary(self, provider_id: int, salary: Decimal) -> bool:
        return self.execute_guarded('''
            UPDATE providers SET salary = %s, updated_at = NOW()
            WHERE id = %s
        ''', (salary, provider_id))
