import logging

from dentalsync.core import config
from dentalsync.core.config import ConnectionDescriptor

try:
    from supabase import AsyncClient, acreate_client
except ImportError:
    AsyncClient = None
    acreate_client = None

logger = logging.getLogger(__name__)

PLACEHOLDER_VALUES = {config.PLACEHOLDER_SUPABASE_URL, config.PLACEHOLDER_SUPABASE_ANON_KEY}


def has_usable_credentials(descriptor: ConnectionDescriptor) -> bool:
    return bool(
        descriptor.url
        and descriptor.key
        and descriptor.url not in PLACEHOLDER_VALUES
        and descriptor.key not in PLACEHOLDER_VALUES
    )


async def create_remote_client(descriptor: ConnectionDescriptor) -> 'AsyncClient | None':
    if acreate_client is None:
        logger.error('Supabase library not installed. Using local storage only.')
        return None

    if not has_usable_credentials(descriptor):
        logger.warning('Supabase credentials not configured. Using local storage only.')
        return None

    try:
        client = await acreate_client(descriptor.url, descriptor.key)
    except Exception:
        logger.exception('Failed to create Supabase client.')
        return None

    logger.info('Supabase client created for %s.', descriptor.url)
    return client
