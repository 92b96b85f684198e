import pytest
from sqlalchemy import update
from sellerbank.db.connection import async_session
from sellerbank.schema.full_schema import (AccountStatus, KycStatus, ReferenceType, SellerAccountTransaction,
                                           TransactionType)
from tests.helpers import account_url, admin_url, fetch_account, fetch_entries, seed_admin, seed_seller

admin_accounts_url = f"{admin_url}/seller-accounts"


@pytest.mark.asyncio
async def test_overview_without_account(ac_client, db_session):
    seller = await seed_seller(db_session, email="ana@loja.test", with_account=False)

    r = await ac_client.get(account_url, headers=seller.headers)
    assert r.status_code == 200
    assert r.json()["data"] == {"has_account": False, "account": None, "transactions": []}


@pytest.mark.asyncio
async def test_non_seller_gets_404(ac_client, db_session):
    admin = await seed_admin(db_session)
    r = await ac_client.get(account_url, headers=admin.headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_open_account(ac_client, db_session):
    seller = await seed_seller(db_session, email="ana@loja.test", with_account=False)

    r = await ac_client.post(account_url, headers=seller.headers,
                             json={"pix_key_type": "EMAIL", "pix_key": "ana@loja.test"})
    assert r.status_code == 201, r.text
    account = r.json()["data"]["account"]
    assert account["account_number"].startswith("MYD")
    assert len(account["account_number"]) == 13
    assert account["status"] == AccountStatus.PENDING.value
    assert account["kyc_status"] == KycStatus.PENDING.value
    assert account["balance"] == 0.0
    assert account["min_withdrawal_amount"] == 50.0
    assert account["pix_key"] == "****test"

    entries = await fetch_entries(account["id"])
    assert len(entries) == 1
    assert entries[0].type == TransactionType.BONUS.value
    assert entries[0].amount == 0
    assert entries[0].reference_type == ReferenceType.ACCOUNT_OPENING.value

    r = await ac_client.post(account_url, headers=seller.headers, json={})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "ACCOUNT_EXISTS"

    r = await ac_client.get(account_url, headers=seller.headers)
    data = r.json()["data"]
    assert data["has_account"] is True
    assert len(data["transactions"]) == 1


@pytest.mark.asyncio
async def test_update_payout_details(ac_client, db_session):
    seller = await seed_seller(db_session, email="ana@loja.test")

    r = await ac_client.put(account_url, headers=seller.headers,
                            json={"bank_name": "Nubank", "bank_code": "260", "agencia": "0001",
                                  "conta": "1234567-8", "conta_tipo": "corrente"})
    assert r.status_code == 200, r.text
    assert r.json()["data"]["account"]["bank_code"] == "260"
    assert (await fetch_account(seller.account.id)).conta == "1234567-8"

    r = await ac_client.put(account_url, headers=seller.headers, json={})
    assert r.status_code == 400

    r = await ac_client.put(account_url, headers=seller.headers, json={"balance": 999})
    assert r.status_code == 422


@pytest.mark.asyncio
async def test_lookup_destination(ac_client, db_session):
    ana = await seed_seller(db_session, email="ana@loja.test")
    await seed_seller(db_session, email="bruno@loja.test", name="Bruno Lima", store_name="Loja do Bruno",
                      account_number="MYD2000000002")
    await seed_seller(db_session, email="carla@loja.test", name="Carla Dias", account_number="MYD3000000003",
                      account_status=AccountStatus.SUSPENDED)

    r = await ac_client.get(f"{account_url}/lookup", headers=ana.headers, params={"account": "myd2000000002"})
    assert r.status_code == 200
    assert r.json()["data"] == {"account_number": "MYD2000000002", "store_name": "Loja do Bruno",
                                "owner_first_name": "Bruno", "status": "ACTIVE"}

    r = await ac_client.get(f"{account_url}/lookup", headers=ana.headers, params={"account": "MYD3000000003"})
    assert r.json()["data"]["status"] == "UNAVAILABLE"

    r = await ac_client.get(f"{account_url}/lookup", headers=ana.headers, params={"account": "MYD9999999999"})
    assert r.status_code == 404

    r = await ac_client.get(f"{account_url}/lookup", headers=ana.headers, params={"account": "MYD1"})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_statement_pagination(ac_client, db_session):
    seller = await seed_seller(db_session, email="ana@loja.test", balance=10_000)
    balance = 10_000
    for i in range(5):
        db_session.add(SellerAccountTransaction(
            account_id=seller.account.id, type=TransactionType.BONUS.value, amount=100,
            balance_before=balance, balance_after=balance + 100, reference=f"TXN-{i}"))
        balance += 100
    await db_session.commit()

    r = await ac_client.get(f"{account_url}/transactions", headers=seller.headers, params={"limit": 2, "page": 2})
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["pagination"] == {"page": 2, "limit": 2, "total": 5, "pages": 3}
    assert len(data["transactions"]) == 2
    assert all("signature" not in (t["meta"] or {}) for t in data["transactions"])


@pytest.mark.asyncio
async def test_admin_kyc_approval_activates_account(ac_client, db_session):
    seller = await seed_seller(db_session, email="ana@loja.test", account_status=AccountStatus.PENDING,
                               kyc_status=KycStatus.PENDING)
    admin = await seed_admin(db_session)

    r = await ac_client.put(f"{admin_accounts_url}/{seller.account.id}", headers=admin.headers,
                            json={"kyc_status": "APPROVED", "reason": "Documentos conferidos"})
    assert r.status_code == 200, r.text
    account = r.json()["data"]["account"]
    assert account["kyc_status"] == KycStatus.APPROVED.value
    assert account["status"] == AccountStatus.ACTIVE.value

    entry = (await fetch_entries(seller.account.id))[-1]
    assert entry.amount == 0
    assert entry.reference_type == ReferenceType.ACCOUNT_STATUS.value
    assert entry.description == "Documentos conferidos"
    assert entry.meta["previous"] == {"status": "PENDING", "kyc_status": "PENDING"}
    assert entry.processed_by == admin.user.id

    r = await ac_client.put(f"{admin_accounts_url}/{seller.account.id}", headers=admin.headers,
                            json={"kyc_status": "APPROVED"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "NO_CHANGES"


@pytest.mark.asyncio
async def test_admin_block_and_unblock(ac_client, db_session):
    seller = await seed_seller(db_session, email="ana@loja.test")
    admin = await seed_admin(db_session)

    r = await ac_client.put(f"{admin_accounts_url}/{seller.account.id}", headers=admin.headers,
                            json={"status": "BLOCKED"})
    assert r.status_code == 200
    assert (await fetch_account(seller.account.id)).status == AccountStatus.BLOCKED.value

    r = await ac_client.put(f"{admin_accounts_url}/{seller.account.id}", headers=admin.headers,
                            json={"status": "ACTIVE"})
    assert r.status_code == 200
    account = await fetch_account(seller.account.id)
    assert account.status == AccountStatus.ACTIVE.value
    assert account.locked_until is None

    r = await ac_client.put(f"{admin_accounts_url}/{seller.account.id}", headers=admin.headers, json={})
    assert r.status_code == 400

    r = await ac_client.put(f"{admin_accounts_url}/999", headers=admin.headers, json={"status": "ACTIVE"})
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_admin_adjustments(ac_client, db_session):
    seller = await seed_seller(db_session, email="ana@loja.test", balance=10_000)
    admin = await seed_admin(db_session)
    url = f"{admin_accounts_url}/{seller.account.id}/adjustments"

    r = await ac_client.post(url, headers=admin.headers,
                             json={"type": "BONUS", "amount": 50, "description": "Campanha de lancamento"})
    assert r.status_code == 201, r.text
    data = r.json()["data"]
    assert data["amount"] == 50.0
    assert data["balance_after"] == 150.0

    r = await ac_client.post(url, headers=admin.headers,
                             json={"type": "FEE", "amount": 20, "description": "Taxa mensal"})
    assert r.status_code == 201
    assert r.json()["data"]["amount"] == -20.0
    assert (await fetch_account(seller.account.id)).balance == 13_000

    r = await ac_client.post(url, headers=admin.headers,
                             json={"type": "CHARGEBACK", "amount": 500, "description": "Estorno"})
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "INSUFFICIENT_BALANCE"
    assert (await fetch_account(seller.account.id)).balance == 13_000

    r = await ac_client.post(url, headers=admin.headers,
                             json={"type": "TRANSFER_IN", "amount": 5, "description": "nope"})
    assert r.status_code == 400

    entries = await fetch_entries(seller.account.id)
    assert [e.type for e in entries] == ["BONUS", "FEE"]
    assert all(e.reference_type == ReferenceType.ADMIN_ADJUSTMENT.value for e in entries)
    assert entries[0].meta["counterparty"] == f"ADMIN:{admin.user.id}"


@pytest.mark.asyncio
async def test_adjustment_boolean_amount_rejected(ac_client, db_session):
    seller = await seed_seller(db_session, email="ana@loja.test", balance=10_000)
    admin = await seed_admin(db_session)

    r = await ac_client.post(f"{admin_accounts_url}/{seller.account.id}/adjustments", headers=admin.headers,
                             json={"type": "BONUS", "amount": True, "description": "Campanha"})
    assert r.status_code == 422
    assert (await fetch_account(seller.account.id)).balance == 10_000
    assert await fetch_entries(seller.account.id) == []


@pytest.mark.asyncio
async def test_adjustment_on_unknown_account(ac_client, db_session):
    admin = await seed_admin(db_session)
    r = await ac_client.post(f"{admin_accounts_url}/404/adjustments", headers=admin.headers,
                             json={"type": "BONUS", "amount": 1, "description": "x"})
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_verify_entry_signature(ac_client, db_session):
    ana = await seed_seller(db_session, email="ana@loja.test", balance=15_000, account_number="MYD1000000001")
    await seed_seller(db_session, email="bruno@loja.test", account_number="MYD2000000002")
    admin = await seed_admin(db_session)

    r = await ac_client.post(f"{account_url}/transfer", headers=ana.headers,
                             json={"destination_account_number": "MYD2000000002", "amount": 10})
    assert r.status_code == 200, r.text
    entry = (await fetch_entries(ana.account.id))[-1]
    verify_url = f"{admin_accounts_url}/{ana.account.id}/transactions/{entry.id}/verify"

    r = await ac_client.get(verify_url, headers=admin.headers)
    assert r.status_code == 200
    assert r.json()["data"]["valid"] is True
    assert r.json()["data"]["signed"] is True

    async with async_session() as session:
        await session.execute(
            update(SellerAccountTransaction)
            .where(SellerAccountTransaction.id == entry.id)
            .values(meta={**entry.meta, "counterparty": "MYD9999999999"}))
        await session.commit()

    r = await ac_client.get(verify_url, headers=admin.headers)
    assert r.json()["data"]["valid"] is False

    r = await ac_client.get(f"{admin_accounts_url}/{ana.account.id}/transactions/99999/verify", headers=admin.headers)
    assert r.status_code == 404
