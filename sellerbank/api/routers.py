from fastapi import APIRouter
from sellerbank.api import version_prefix
from sellerbank.accounts.routes import accounts_router, accounts_admin_router
from sellerbank.transfers.routes import transfers_router
from sellerbank.withdrawals.routes import withdrawals_router, withdrawals_admin_router
from sellerbank.taxes.routes import taxes_router, taxes_admin_router
from sellerbank.common.routes import home_router


public_routers = APIRouter(prefix=version_prefix)

public_routers.include_router(accounts_router, prefix="/seller/account", tags=["seller-account"])
public_routers.include_router(transfers_router, prefix="/seller/account", tags=["transfers"])
public_routers.include_router(withdrawals_router, prefix="/seller/withdrawals", tags=["withdrawals"])
public_routers.include_router(taxes_router, prefix="/taxes", tags=["taxes"])
public_routers.include_router(home_router, tags=["home"])

#--------------------------------------------------------------------------------------------------------

admin_routers = APIRouter(prefix=f"{version_prefix}/admin")

admin_routers.include_router(withdrawals_admin_router, prefix="/withdrawals", tags=["withdrawals-admin"])
admin_routers.include_router(accounts_admin_router, prefix="/seller-accounts", tags=["seller-accounts-admin"])
admin_routers.include_router(taxes_admin_router, prefix="/taxes", tags=["taxes-admin"])
