"""
End-to-end tests through the HTTP routes.
"""
from decimal import Decimal


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_requests_without_token_are_rejected(client, group):
    response = client.get(f"/api/groups/{group.id}/balances")
    assert response.status_code == 401

    response = client.get("/api/users/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_current_user(client, alice, auth_headers):
    response = client.get("/api/users/me", headers=auth_headers(alice))
    assert response.status_code == 200
    assert response.json()["email"] == "alice@example.com"


def test_create_group(client, alice, bob, auth_headers):
    response = client.post(
        "/api/groups",
        json={"name": "Flat 4B", "group_type": "Roommates", "member_emails": [bob.email, "ghost@example.com"]},
        headers=auth_headers(alice)
    )
    assert response.status_code == 201
    body = response.json()
    assert body["not_found_members"] == ["ghost@example.com"]
    assert [m["role"] for m in body["group"]["members"]] == ["Owner", "Member"]
    assert body["group"]["settings"]["allow_member_add_expense"] is True


def test_list_groups_with_stats(client, group, alice, auth_headers):
    response = client.get("/api/groups", headers=auth_headers(alice))
    assert response.status_code == 200
    [listed] = response.json()
    assert listed["id"] == group.id
    assert listed["stats"]["total_expense_count"] == 0


def test_expense_to_settlement_flow(client, group, alice, bob, carol, auth_headers):
    response = client.post(
        f"/api/groups/{group.id}/expenses",
        json={"name": "Dinner", "amount": "90.00", "category": "Food", "split": {"method": "Equal"}},
        headers=auth_headers(alice)
    )
    assert response.status_code == 201
    expense = response.json()
    assert [Decimal(s["amount"]) for s in expense["splits"]] == [Decimal("30.00")] * 3

    balances = client.get(f"/api/groups/{group.id}/balances", headers=auth_headers(bob)).json()
    assert [(b["member_id"], Decimal(b["balance"])) for b in balances] == [
        (alice.id, Decimal("-60.00")),
        (bob.id, Decimal("30.00")),
        (carol.id, Decimal("30.00")),
    ]

    suggestions = client.get(f"/api/groups/{group.id}/settlements/suggestions", headers=auth_headers(bob)).json()
    assert [
        (s["from_user"]["member_id"], s["to_user"]["member_id"], Decimal(s["amount"]))
        for s in suggestions["suggestions"]
    ] == [(bob.id, alice.id, Decimal("30.00")), (carol.id, alice.id, Decimal("30.00"))]

    response = client.post(
        f"/api/groups/{group.id}/settlements",
        json={"from_user_id": bob.id, "to_user_id": alice.id, "amount": "30.00", "expense_ids": [expense["id"]]},
        headers=auth_headers(bob)
    )
    assert response.status_code == 201
    settlement = response.json()
    assert settlement["status"] == "Pending"

    response = client.put(
        f"/api/settlements/{settlement['id']}",
        json={"status": "Completed", "payment_method": "UPI"},
        headers=auth_headers(bob)
    )
    assert response.status_code == 200
    assert response.json()["status"] == "Completed"
    assert response.json()["settled_at"] is not None

    response = client.put(
        f"/api/settlements/{settlement['id']}", json={"status": "Pending"}, headers=auth_headers(bob)
    )
    assert response.status_code == 409

    unsettled = client.get(
        f"/api/groups/{group.id}/expenses", params={"is_settled": "false"}, headers=auth_headers(alice)
    ).json()
    assert unsettled == []

    completed = client.get(
        f"/api/groups/{group.id}/settlements", params={"status": "Completed"}, headers=auth_headers(alice)
    ).json()
    assert [s["id"] for s in completed] == [settlement["id"]]


def test_self_settlement_is_a_bad_request(client, group, alice, auth_headers):
    response = client.post(
        f"/api/groups/{group.id}/settlements",
        json={"from_user_id": alice.id, "to_user_id": alice.id, "amount": "10.00"},
        headers=auth_headers(alice)
    )
    assert response.status_code == 400
    assert "detail" in response.json()


def test_unbalanced_split_is_a_bad_request(client, group, alice, bob, auth_headers):
    response = client.post(
        f"/api/groups/{group.id}/expenses",
        json={
            "name": "Taxi", "amount": "50.00", "category": "Transport",
            "split": {"method": "Exact", "shares": [{"member_id": bob.id, "amount": "20.00"}]}
        },
        headers=auth_headers(alice)
    )
    assert response.status_code == 400


def test_unknown_split_method_fails_validation(client, group, alice, auth_headers):
    response = client.post(
        f"/api/groups/{group.id}/expenses",
        json={"name": "Taxi", "amount": "50.00", "category": "Transport", "split": {"method": "Shares"}},
        headers=auth_headers(alice)
    )
    assert response.status_code == 422


def test_unknown_group_is_not_found(client, alice, auth_headers):
    response = client.get("/api/groups/doesnotexist/balances", headers=auth_headers(alice))
    assert response.status_code == 404


def test_non_member_is_forbidden(client, group, outsider, auth_headers):
    response = client.get(f"/api/groups/{group.id}", headers=auth_headers(outsider))
    assert response.status_code == 403


def test_group_detail_and_dashboard(client, group, alice, bob, auth_headers):
    client.post(
        f"/api/groups/{group.id}/expenses",
        json={"name": "Rent", "amount": "300.00", "category": "Housing", "payer_id": bob.id},
        headers=auth_headers(alice)
    )

    detail = client.get(f"/api/groups/{group.id}", headers=auth_headers(bob)).json()
    assert len(detail["expenses"]) == 1
    assert Decimal(detail["user_balance"]["balance"]) == Decimal("-200.00")

    dashboard = client.get(f"/api/groups/{group.id}/dashboard", headers=auth_headers(alice)).json()
    assert dashboard["stats"]["total_expense_count"] == 1
    assert Decimal(dashboard["user_balance"]["balance"]) == Decimal("100.00")


def test_remove_owner_is_rejected(client, group, alice, auth_headers):
    response = client.delete(f"/api/groups/{group.id}/members/{alice.id}", headers=auth_headers(alice))
    assert response.status_code == 400


def test_amounts_beyond_cents_fail_validation(client, group, alice, bob, auth_headers):
    too_wide = client.post(
        f"/api/groups/{group.id}/expenses",
        json={"name": "Yacht", "amount": "10000000000000.00", "category": "Travel"},
        headers=auth_headers(alice)
    )
    assert too_wide.status_code == 422

    sub_cent = client.post(
        f"/api/groups/{group.id}/expenses",
        json={
            "name": "Taxi", "amount": "99.99", "category": "Transport",
            "split": {"method": "Custom", "shares": [
                {"member_id": alice.id, "amount": "33.335"},
                {"member_id": bob.id, "amount": "66.655"},
            ]}
        },
        headers=auth_headers(alice)
    )
    assert sub_cent.status_code == 422
