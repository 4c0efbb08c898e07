from .provider_repository import ProviderRepository

__all__ = ['ProviderRepository']
