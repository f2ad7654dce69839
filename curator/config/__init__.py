from .settings import Settings, get_settings
from .database import PostgresConfig, create_postgres_pool

__all__ = ['Settings', 'get_settings', 'PostgresConfig', 'create_postgres_pool']
