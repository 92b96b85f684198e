from typing import Dict, Optional
from sqlalchemy import select
from sellerbank.cache.utils import cache_delete, cache_get, cache_set
from sellerbank.common.utils import now
from sellerbank.schema.full_schema import TaxConfigEntry
from sellerbank.taxes.constants import KEY_PREFIX, TAX_CONFIG_CACHE_KEY, TAX_CONFIG_CACHE_TTL, logger
from sellerbank.taxes.import_tax import build_tax_config
from sellerbank.taxes.models import TaxConfig


async def load_tax_entries(session) -> Dict[str, str]:
    stmt = select(TaxConfigEntry.key, TaxConfigEntry.value).where(TaxConfigEntry.key.like(f"{KEY_PREFIX}%"))
    res = await session.execute(stmt)
    return {k: v for k, v in res.all()}


async def get_tax_config(session) -> TaxConfig:
    """Stored configuration, cached in redis for a minute."""
    cached = await cache_get(TAX_CONFIG_CACHE_KEY)
    if cached:
        return TaxConfig.model_validate(cached)

    config = build_tax_config(await load_tax_entries(session))
    await cache_set(TAX_CONFIG_CACHE_KEY, config.model_dump(mode="json"), TAX_CONFIG_CACHE_TTL)
    return config


async def upsert_tax_entries(session, values: Dict[str, str], updated_by: Optional[int] = None):
    if not values:
        return
    res = await session.execute(select(TaxConfigEntry).where(TaxConfigEntry.key.in_(list(values.keys()))))
    existing = {row.key: row for row in res.scalars().all()}
    for key, value in values.items():
        row = existing.get(key)
        if row is None:
            session.add(TaxConfigEntry(key=key, value=value, updated_by=updated_by))
        else:
            row.value = value
            row.updated_by = updated_by
            row.updated_at = now()
            session.add(row)
    await session.commit()
    await cache_delete(TAX_CONFIG_CACHE_KEY)
    logger.info("tax.config.updated", extra={"keys": sorted(values.keys()), "updated_by": updated_by})
