# Catering Live API Tests - Orders
#
# Tests for:
# - Order creation and order number format
# - Status workflow over HTTP (preconditions, terminal states)
# - Payment status and completion
# - Bulk updates with partial success
# - Concurrent order creation (unique numbers)

import re
from concurrent.futures import ThreadPoolExecutor

import pytest

from tests.conftest import APIClient, LiveDataFactory, LiveTestFailure, assert_response


ORDER_NUMBER_RE = re.compile(r"^[A-Z]{2}\d{5,}$")


class TestOrderCreation:
    """Order create/read over HTTP."""

    @pytest.mark.smoke
    @pytest.mark.orders
    def test_create_order(self, api_client: APIClient):
        """
        SCENARIO: Create a delivery order with money fields
        EXPECTED: HTTP 201, quote_pending, unpaid, well-formed order number
        """
        response = api_client.post("/api/orders/", json={
            "type": "delivery",
            "total": "80.00",
            "total_tax": "6.40",
            "delivery_charge": "12.00",
        })
        assert_response(
            response, 201,
            scenario="Create delivery order",
            code_location="backend/catering/routes/orders.py:create_order_route"
        )

        order = response.json()["order"]
        if not ORDER_NUMBER_RE.match(order["order_number"]):
            raise LiveTestFailure(
                scenario="Order number format",
                expected="Two letters followed by at least five digits",
                actual=order["order_number"],
                likely_cause="format_order_number padding changed",
                code_location="backend/catering/services/order_number_service.py:format_order_number",
                response=response
            )
        assert order["status"] == "quote_pending"
        assert order["payment_status"] == "unpaid"
        assert order["grand_total"] == "98.40"

    @pytest.mark.orders
    def test_create_order_rejects_bad_input(self, api_client: APIClient):
        """
        SCENARIO: Unknown type, unknown field, negative grand total
        EXPECTED: HTTP 400 each time
        """
        for payload in (
            {"type": "drone"},
            {"type": "pickup", "status": "completed"},
            {"type": "pickup", "total": "5.00", "discount": "9.00"},
        ):
            assert_response(
                api_client.post("/api/orders/", json=payload), 400,
                scenario=f"Create order with {payload}",
                code_location="backend/catering/services/order_service.py:create_order"
            )


class TestOrderWorkflow:
    """Status transitions over HTTP."""

    @pytest.mark.smoke
    @pytest.mark.orders
    def test_delivery_needs_associations(self, api_client: APIClient, factory: LiveDataFactory):
        """
        SCENARIO: Dispatch a delivery order before assigning caterer/airport
        EXPECTED: HTTP 409, then 200 once assigned
        """
        order = factory.create_order("delivery")

        response = api_client.post(f"/api/orders/{order['id']}/status", json={"status": "out_for_delivery"})
        assert_response(
            response, 409,
            scenario="Dispatch delivery order without caterer",
            code_location="backend/catering/services/order_workflow_service.py:check_transition"
        )

        response = api_client.patch(f"/api/orders/{order['id']}", json={
            "caterer_id": factory.seed["caterer_id"],
            "delivery_airport_id": factory.seed["airport_id"],
            "status": "out_for_delivery",
        })
        assert_response(
            response, 200,
            scenario="Assign caterer + airport and dispatch in one patch",
            code_location="backend/catering/services/order_service.py:update_order"
        )
        assert response.json()["status_change"]["new_status"] == "out_for_delivery"

    @pytest.mark.orders
    def test_completion_requires_payment_and_is_final(self, api_client: APIClient, factory: LiveDataFactory):
        """
        SCENARIO: Complete unpaid order, pay, complete, then try to reopen
        EXPECTED: 409, 200, 200, 409
        """
        order = factory.create_dispatchable_order(total="40.00")
        path = f"/api/orders/{order['id']}"

        assert_response(
            api_client.post(f"{path}/status", json={"status": "completed"}), 409,
            scenario="Complete unpaid order",
            code_location="backend/catering/services/order_workflow_service.py:check_transition"
        )
        assert_response(
            api_client.post(f"{path}/payment-status", json={"payment_status": "paid"}), 200,
            scenario="Mark order paid",
            code_location="backend/catering/routes/orders.py:payment_status_route"
        )
        assert_response(
            api_client.post(f"{path}/status", json={"status": "completed"}), 200,
            scenario="Complete paid order",
            code_location="backend/catering/services/order_workflow_service.py:transition_order"
        )
        assert_response(
            api_client.post(f"{path}/status", json={"status": "quote_pending"}), 409,
            scenario="Reopen completed order",
            code_location="backend/catering/services/order_workflow_service.py:check_transition"
        )

        history = api_client.get(f"{path}/history").json()["events"]
        assert [e["new_status"] for e in history] == ["completed"]

    @pytest.mark.orders
    def test_bulk_update_partial_success(self, api_client: APIClient, factory: LiveDataFactory):
        """
        SCENARIO: Bulk dispatch a mix of ready and unready orders
        EXPECTED: HTTP 200; ready rows applied, the rest skipped with reasons
        """
        ready = factory.create_dispatchable_order()
        unready = factory.create_order("delivery")

        response = api_client.patch("/api/orders/bulk/update", json={
            "ids": [ready["id"], unready["id"]],
            "status": "out_for_delivery",
        })
        assert_response(
            response, 200,
            scenario="Bulk dispatch",
            code_location="backend/catering/services/bulk_order_service.py:apply_bulk"
        )
        body = response.json()
        assert body["applied"] == [ready["id"]]
        assert [s["id"] for s in body["skipped"]] == [unready["id"]]
        assert body["skipped"][0]["reason"]


class TestOrderNumberConcurrency:

    @pytest.mark.orders
    @pytest.mark.concurrency
    def test_parallel_creates_get_unique_numbers(self, live_config, live_server):
        """
        SCENARIO: Many clients create orders at the same time
        EXPECTED: Every request succeeds and no number is handed out twice
        """
        def create(_):
            client = APIClient(live_config.backend_base_url, timeout=live_config.request_timeout)
            try:
                return client.post("/api/orders/", json={"type": "pickup"})
            finally:
                client.close()

        with ThreadPoolExecutor(max_workers=live_config.stress_users) as pool:
            responses = list(pool.map(create, range(live_config.stress_users * 2)))

        failures = [r for r in responses if r.status_code != 201]
        if failures:
            raise LiveTestFailure(
                scenario="Parallel order creation",
                expected="HTTP 201 for every request",
                actual=f"{len(failures)} failed; first: HTTP {failures[0].status_code}",
                likely_cause=_cause_for(failures[0]),
                code_location="backend/catering/services/order_service.py:_insert_with_number",
                response=failures[0]
            )

        numbers = [r.json()["order"]["order_number"] for r in responses]
        assert len(numbers) == len(set(numbers))


def _cause_for(response) -> str:
    if response.status_code == 409:
        return "Order number collisions exhausted ORDER_NUMBER_MAX_ATTEMPTS"
    if response.status_code == 500:
        return "Lock contention outlasted DB_RETRY_ATTEMPTS"
    return "See response body"
