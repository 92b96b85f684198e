from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sellerbank.common.custom_exceptions import PayloadValidationError
from sellerbank.common.utils import success_response
from sellerbank.db.dependencies import get_session
from sellerbank.taxes.models import QuoteIn, TaxConfigUpdateIn
from sellerbank.taxes.repository import get_tax_config, upsert_tax_entries
from sellerbank.taxes.services import config_update_to_entries, quote_import_taxes, serialize_tax_config
from sellerbank.user.dependencies import require_admin


taxes_router = APIRouter()
taxes_admin_router = APIRouter()


@taxes_router.post("/quote")
async def quote_taxes(payload: QuoteIn, session: AsyncSession = Depends(get_session)):
    config = await get_tax_config(session)
    return success_response(quote_import_taxes(payload, config))


@taxes_admin_router.get("/config")
async def read_tax_config(admin_id: int = Depends(require_admin), session: AsyncSession = Depends(get_session)):
    config = await get_tax_config(session)
    return success_response({"config": serialize_tax_config(config)})


@taxes_admin_router.put("/config")
async def update_tax_config(payload: TaxConfigUpdateIn, admin_id: int = Depends(require_admin),
                            session: AsyncSession = Depends(get_session)):
    values = config_update_to_entries(payload)
    if not values:
        raise PayloadValidationError("No configuration values to update")
    await upsert_tax_entries(session, values, updated_by=admin_id)
    config = await get_tax_config(session)
    return success_response({"config": serialize_tax_config(config)})
