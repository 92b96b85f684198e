import pytest
from sellerbank.schema.full_schema import (AccountStatus, OrderItemType, OrderStatus, SellerStatus,
                                           WithdrawalStatus)
from tests.helpers import fetch_account, fetch_audits, fetch_entries, fetch_withdrawals, seed_order, seed_seller, withdrawals_url

pix_payload = {"amount": 100, "payment_method": "PIX", "pix_key": "ana@loja.test", "pix_key_type": "EMAIL"}


@pytest.mark.asyncio
async def test_request_withdrawal_does_not_debit(ac_client, db_session):
    seller = await seed_seller(db_session, email="ana@loja.test", balance=100_000)

    r = await ac_client.post(withdrawals_url, headers=seller.headers, json={**pix_payload, "seller_note": "Saque"})
    assert r.status_code == 201, r.text
    withdrawal = r.json()["data"]["withdrawal"]
    assert withdrawal["status"] == WithdrawalStatus.PENDING.value
    assert withdrawal["amount"] == 100.0
    assert withdrawal["payment_method"] == "PIX"
    assert withdrawal["pix_key"] == "****test"
    assert withdrawal["seller_note"] == "Saque"

    account = await fetch_account(seller.account.id)
    assert account.balance == 100_000
    assert account.total_withdrawn == 0
    assert await fetch_entries(seller.account.id) == []

    rows = await fetch_withdrawals(seller.seller.id)
    assert len(rows) == 1
    assert rows[0].pix_key == "ana@loja.test"
    assert len(await fetch_audits(seller.user.id, "FINANCIAL_WITHDRAWAL_REQUESTED")) == 1


@pytest.mark.asyncio
async def test_second_withdrawal_rejected_while_one_in_flight(ac_client, db_session):
    seller = await seed_seller(db_session, email="ana@loja.test", balance=100_000)

    r = await ac_client.post(withdrawals_url, headers=seller.headers, json=pix_payload)
    assert r.status_code == 201
    first_id = r.json()["data"]["withdrawal"]["id"]

    r = await ac_client.post(withdrawals_url, headers=seller.headers, json=pix_payload)
    assert r.status_code == 400
    err = r.json()["error"]
    assert err["code"] == "WITHDRAWAL_IN_PROGRESS"
    assert err["details"]["withdrawal_id"] == first_id
    assert len(await fetch_withdrawals(seller.seller.id)) == 1


@pytest.mark.asyncio
async def test_available_balance_discounts_open_dropshipping_costs(ac_client, db_session):
    seller = await seed_seller(db_session, email="ana@loja.test", balance=100_000)
    await seed_order(db_session, seller.seller.id, [(OrderItemType.DROPSHIPPING, 50_000),
                                                    (OrderItemType.DROPSHIPPING, 30_000),
                                                    (OrderItemType.OWN, None)], status=OrderStatus.SHIPPED)
    # settled or cancelled orders no longer owe the supplier
    await seed_order(db_session, seller.seller.id, [(OrderItemType.DROPSHIPPING, 10_000)], status=OrderStatus.COMPLETED)
    await seed_order(db_session, seller.seller.id, [(OrderItemType.DROPSHIPPING, 10_000)], status=OrderStatus.CANCELLED)

    r = await ac_client.post(withdrawals_url, headers=seller.headers, json={**pix_payload, "amount": 300})
    assert r.status_code == 400
    details = r.json()["error"]["details"]
    assert r.json()["error"]["code"] == "INSUFFICIENT_BALANCE"
    assert details["balance"] == 1_000.0
    assert details["pending_payments"] == 800.0
    assert details["available_balance"] == 200.0

    r = await ac_client.post(withdrawals_url, headers=seller.headers, json={**pix_payload, "amount": 200})
    assert r.status_code == 201, r.text


@pytest.mark.asyncio
async def test_available_balance_never_negative(ac_client, db_session):
    seller = await seed_seller(db_session, email="ana@loja.test", balance=10_000)
    await seed_order(db_session, seller.seller.id, [(OrderItemType.DROPSHIPPING, 50_000)])

    r = await ac_client.get(withdrawals_url, headers=seller.headers)
    assert r.status_code == 200
    summary = r.json()["data"]["summary"]
    assert summary["balance"] == 100.0
    assert summary["pending_payments"] == 500.0
    assert summary["available_balance"] == 0.0


@pytest.mark.asyncio
@pytest.mark.parametrize("payload,code", [
    ({"amount": 100, "payment_method": "PIX", "pix_key_type": "EMAIL"}, "INVALID_PAYLOAD"),
    ({"amount": 100, "payment_method": "PIX", "pix_key": "ana@loja.test", "pix_key_type": "PASSPORT"}, "INVALID_PAYLOAD"),
    ({"amount": 100, "payment_method": "CHEQUE"}, "INVALID_PAYLOAD"),
    ({"amount": 100, "payment_method": "TED", "bank_name": "Banco do Brasil", "agencia": "0001"}, "INVALID_PAYLOAD"),
    ({**pix_payload, "amount": 5}, "LIMIT_EXCEEDED"),
    ({**pix_payload, "amount": 0}, "INVALID_PAYLOAD"),
])
async def test_withdrawal_payload_validation(ac_client, db_session, payload, code):
    seller = await seed_seller(db_session, email="ana@loja.test", balance=100_000)

    r = await ac_client.post(withdrawals_url, headers=seller.headers, json=payload)
    assert r.status_code == 400
    assert r.json()["error"]["code"] == code
    assert await fetch_withdrawals(seller.seller.id) == []


@pytest.mark.asyncio
async def test_withdrawal_boolean_amount_rejected(ac_client, db_session):
    seller = await seed_seller(db_session, email="ana@loja.test", balance=100_000)

    r = await ac_client.post(withdrawals_url, headers=seller.headers, json={**pix_payload, "amount": True})
    assert r.status_code == 422
    assert "amount" in r.json()["error"]["details"]["fields"][0]
    assert await fetch_withdrawals(seller.seller.id) == []


@pytest.mark.asyncio
async def test_account_minimum_withdrawal_applies(ac_client, db_session):
    # account floor of R$ 50,00 is above the global R$ 10,00
    seller = await seed_seller(db_session, email="ana@loja.test", balance=100_000)

    r = await ac_client.post(withdrawals_url, headers=seller.headers, json={**pix_payload, "amount": 20})
    assert r.status_code == 400
    err = r.json()["error"]
    assert err["code"] == "LIMIT_EXCEEDED"
    assert err["details"]["min_withdrawal_amount"] == 50.0
    assert await fetch_withdrawals(seller.seller.id) == []

    r = await ac_client.post(withdrawals_url, headers=seller.headers, json={**pix_payload, "amount": 50})
    assert r.status_code == 201, r.text


@pytest.mark.asyncio
async def test_bank_transfer_withdrawal(ac_client, db_session):
    seller = await seed_seller(db_session, email="ana@loja.test", balance=100_000)

    r = await ac_client.post(withdrawals_url, headers=seller.headers, json={
        "amount": 250.75, "payment_method": "TED", "bank_name": "Banco do Brasil", "bank_code": "001",
        "agencia": "1234", "conta": "56789-0", "conta_tipo": "corrente"})
    assert r.status_code == 201, r.text
    withdrawal = r.json()["data"]["withdrawal"]
    assert withdrawal["amount"] == 250.75
    assert withdrawal["bank_code"] == "001"
    assert withdrawal["pix_key"] is None


@pytest.mark.asyncio
async def test_withdrawal_requires_active_seller_and_account(ac_client, db_session):
    suspended = await seed_seller(db_session, email="ana@loja.test", balance=100_000,
                                  seller_status=SellerStatus.SUSPENDED)
    r = await ac_client.post(withdrawals_url, headers=suspended.headers, json=pix_payload)
    assert r.status_code == 403
    assert r.json()["error"]["code"] == "SELLER_INACTIVE"

    blocked = await seed_seller(db_session, email="bruno@loja.test", balance=100_000,
                                account_status=AccountStatus.BLOCKED)
    r = await ac_client.post(withdrawals_url, headers=blocked.headers, json=pix_payload)
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "ACCOUNT_UNAVAILABLE"

    no_account = await seed_seller(db_session, email="carla@loja.test", with_account=False)
    r = await ac_client.post(withdrawals_url, headers=no_account.headers, json=pix_payload)
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "ACCOUNT_NOT_FOUND"


@pytest.mark.asyncio
async def test_cancel_pending_withdrawal_frees_the_slot(ac_client, db_session):
    seller = await seed_seller(db_session, email="ana@loja.test", balance=100_000)

    r = await ac_client.post(withdrawals_url, headers=seller.headers, json=pix_payload)
    withdrawal_id = r.json()["data"]["withdrawal"]["id"]

    r = await ac_client.post(f"{withdrawals_url}/{withdrawal_id}/cancel", headers=seller.headers)
    assert r.status_code == 200, r.text
    assert r.json()["data"]["withdrawal"]["status"] == WithdrawalStatus.CANCELLED.value

    r = await ac_client.post(f"{withdrawals_url}/{withdrawal_id}/cancel", headers=seller.headers)
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "INVALID_STATE"

    r = await ac_client.post(withdrawals_url, headers=seller.headers, json=pix_payload)
    assert r.status_code == 201
    assert (await fetch_account(seller.account.id)).balance == 100_000


@pytest.mark.asyncio
async def test_cannot_cancel_someone_elses_withdrawal(ac_client, db_session):
    ana = await seed_seller(db_session, email="ana@loja.test", balance=100_000)
    bruno = await seed_seller(db_session, email="bruno@loja.test", balance=100_000)

    r = await ac_client.post(withdrawals_url, headers=ana.headers, json=pix_payload)
    withdrawal_id = r.json()["data"]["withdrawal"]["id"]

    r = await ac_client.post(f"{withdrawals_url}/{withdrawal_id}/cancel", headers=bruno.headers)
    assert r.status_code == 404

    r = await ac_client.post(f"{withdrawals_url}/not-a-uuid/cancel", headers=ana.headers)
    assert r.status_code == 404


@pytest.mark.asyncio
async def test_list_my_withdrawals(ac_client, db_session):
    seller = await seed_seller(db_session, email="ana@loja.test", balance=100_000)
    r = await ac_client.post(withdrawals_url, headers=seller.headers, json=pix_payload)
    withdrawal_id = r.json()["data"]["withdrawal"]["id"]
    await ac_client.post(f"{withdrawals_url}/{withdrawal_id}/cancel", headers=seller.headers)
    await ac_client.post(withdrawals_url, headers=seller.headers, json={**pix_payload, "amount": 50})

    r = await ac_client.get(withdrawals_url, headers=seller.headers)
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["pagination"]["total"] == 2
    assert {w["status"] for w in data["withdrawals"]} == {"CANCELLED", "PENDING"}
    assert data["summary"]["available_balance"] == 1_000.0

    r = await ac_client.get(withdrawals_url, headers=seller.headers, params={"status": "pending"})
    assert [w["amount"] for w in r.json()["data"]["withdrawals"]] == [50.0]

    r = await ac_client.get(withdrawals_url, headers=seller.headers, params={"status": "bogus"})
    assert r.status_code == 400


@pytest.mark.asyncio
async def test_withdrawal_rate_limited(ac_client, db_session):
    seller = await seed_seller(db_session, email="ana@loja.test", balance=100_000)

    for _ in range(3):
        r = await ac_client.post(withdrawals_url, headers=seller.headers, json={**pix_payload, "amount": 1})
        assert r.status_code == 400

    r = await ac_client.post(withdrawals_url, headers=seller.headers, json=pix_payload)
    assert r.status_code == 429
    assert "Retry-After" in r.headers
