# Catering Backend Live Test Suite - Shared Configuration and Fixtures
#
# This module provides:
# - Test database provisioning (ephemeral SQLite per test run)
# - Flask server lifecycle (or an external server via TEST_EXTERNAL_SERVER)
# - Reference data seeding (airport, caterer, customer)
# - Failure message formatting

import os
import sys
import time
import tempfile
import subprocess
import shutil
from pathlib import Path
from typing import Optional, Dict, Any
from dataclasses import dataclass

import pytest
import httpx

# Add backend to path for imports
REPO_ROOT = Path(__file__).parent.parent
BACKEND_DIR = REPO_ROOT / "backend"
sys.path.insert(0, str(BACKEND_DIR))


# =============================================================================
# CONFIGURATION
# =============================================================================

@dataclass
class LiveTestConfig:
    """Test configuration with environment variable overrides."""
    backend_base_url: str = os.environ.get("TEST_BACKEND_URL", "http://127.0.0.1:5001")

    request_timeout: float = float(os.environ.get("TEST_REQUEST_TIMEOUT", "30"))
    server_startup_timeout: float = float(os.environ.get("TEST_SERVER_STARTUP_TIMEOUT", "30"))

    # Concurrency (for burst and stress tests)
    stress_users: int = int(os.environ.get("TEST_STRESS_USERS", "10"))
    stress_duration: int = int(os.environ.get("TEST_STRESS_DURATION", "60"))

    external_server: bool = os.environ.get("TEST_EXTERNAL_SERVER", "false").lower() == "true"

    @property
    def port(self) -> str:
        return self.backend_base_url.rsplit(":", 1)[-1].strip("/")


# =============================================================================
# FAILURE MESSAGE HELPER
# =============================================================================

class LiveTestFailure(Exception):
    """
    Exception with a detailed, human-readable failure message.

    Structure:
    1. Scenario: What was being tested
    2. Expected: What should have happened
    3. Actual: What actually happened
    4. Likely Cause: Most probable reason for failure
    5. Code Location: Where to look in the codebase
    """

    def __init__(
        self,
        scenario: str,
        expected: str,
        actual: str,
        likely_cause: str,
        code_location: str,
        response: Optional[httpx.Response] = None,
        extra_context: Optional[Dict[str, Any]] = None
    ):
        self.scenario = scenario
        self.expected = expected
        self.actual = actual
        self.likely_cause = likely_cause
        self.code_location = code_location
        self.response = response
        self.extra_context = extra_context or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        lines = [
            "",
            "=" * 80,
            "TEST FAILURE DETAILS",
            "=" * 80,
            f"SCENARIO: {self.scenario}",
            "-" * 80,
            f"EXPECTED: {self.expected}",
            f"ACTUAL: {self.actual}",
            "-" * 80,
            f"LIKELY CAUSE: {self.likely_cause}",
            f"CODE LOCATION: {self.code_location}",
        ]

        if self.response is not None:
            lines.extend([
                "-" * 80,
                f"HTTP STATUS: {self.response.status_code}",
                f"RESPONSE BODY: {self.response.text[:1000]}",
            ])

        if self.extra_context:
            lines.append("-" * 80)
            lines.append("EXTRA CONTEXT:")
            for key, value in self.extra_context.items():
                lines.append(f"  {key}: {value}")

        lines.append("=" * 80)
        return "\n".join(lines)


def assert_response(
    response: httpx.Response,
    expected_status: int,
    scenario: str,
    code_location: str,
    expected_body_contains: Optional[str] = None
):
    """
    Assert HTTP response status and optionally body content.
    Raises LiveTestFailure with detailed message on failure.
    """
    if response.status_code != expected_status:
        raise LiveTestFailure(
            scenario=scenario,
            expected=f"HTTP {expected_status}",
            actual=f"HTTP {response.status_code}",
            likely_cause=_infer_cause(response),
            code_location=code_location,
            response=response
        )

    if expected_body_contains and expected_body_contains not in response.text:
        raise LiveTestFailure(
            scenario=scenario,
            expected=f"Response body contains: {expected_body_contains}",
            actual=f"Response body: {response.text[:500]}",
            likely_cause="Response format changed or wrong endpoint hit",
            code_location=code_location,
            response=response
        )


def _infer_cause(response: httpx.Response) -> str:
    """Infer likely cause from response status/body."""
    if response.status_code == 404:
        return "Resource not found - wrong ID or already deleted"
    elif response.status_code == 400:
        return "Invalid request - unknown field, bad value, or unknown status"
    elif response.status_code == 409:
        return "Conflict - workflow rule violated or order number could not be allocated"
    elif response.status_code == 500:
        return "Server error - check backend logs for stack trace"
    elif response.status_code == 503:
        return "Database unavailable - check DATABASE_URL"
    else:
        return f"Unexpected status code {response.status_code}"


# =============================================================================
# HTTP CLIENT
# =============================================================================

class APIClient:
    """Thin httpx wrapper rooted at the backend base URL."""

    def __init__(self, base_url: str, timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(timeout=timeout, headers={"Content-Type": "application/json"})

    def get(self, path: str, params: Optional[Dict] = None, **kwargs) -> httpx.Response:
        return self.client.get(f"{self.base_url}{path}", params=params, **kwargs)

    def post(self, path: str, json: Optional[Dict] = None, **kwargs) -> httpx.Response:
        return self.client.post(f"{self.base_url}{path}", json=json, **kwargs)

    def put(self, path: str, json: Optional[Dict] = None, **kwargs) -> httpx.Response:
        return self.client.put(f"{self.base_url}{path}", json=json, **kwargs)

    def patch(self, path: str, json: Optional[Dict] = None, **kwargs) -> httpx.Response:
        return self.client.patch(f"{self.base_url}{path}", json=json, **kwargs)

    def delete(self, path: str, json: Optional[Dict] = None, **kwargs) -> httpx.Response:
        # httpx.Client.delete() takes no body
        return self.client.request("DELETE", f"{self.base_url}{path}", json=json, **kwargs)

    def close(self):
        self.client.close()


# =============================================================================
# SERVER MANAGEMENT
# =============================================================================

class ServerManager:
    """
    Manages Flask backend server lifecycle for tests.
    """

    def __init__(self, config: LiveTestConfig):
        self.config = config
        self.process: Optional[subprocess.Popen] = None
        self.db_file: Optional[Path] = None
        self.seed: Dict[str, int] = {}

    @property
    def db_url(self) -> str:
        return f"sqlite:///{self.db_file}"

    def initialize_db(self) -> Dict[str, int]:
        """Create the schema and the reference rows orders point at."""
        from catering import create_app
        from catering.extensions import db
        from catering.models import Airport, Caterer, Customer

        app = create_app({"SQLALCHEMY_DATABASE_URI": self.db_url})
        with app.app_context():
            db.create_all()

            airport = Airport(name="Van Nuys", fbo_name="Clay Lacy", iata_code="VNY", icao_code="KVNY")
            db.session.add(airport)
            db.session.commit()

            caterer = Caterer(name="Runway Provisions", email="desk@runway.test", airport_id=airport.id)
            customer = Customer(first_name="Sam", last_name="Okafor", email="sam@example.com")
            db.session.add_all([caterer, customer])
            db.session.commit()

            self.seed = {
                "airport_id": airport.id,
                "caterer_id": caterer.id,
                "customer_id": customer.id,
            }
            db.session.remove()
            db.engine.dispose()
        return self.seed

    def start(self) -> bool:
        """Start the Flask server with test database."""
        temp_dir = tempfile.mkdtemp(prefix="catering_test_")
        self.db_file = Path(temp_dir) / "test_catering.sqlite3"
        self.initialize_db()

        env = os.environ.copy()
        env["DATABASE_URL"] = self.db_url
        env["LOG_LEVEL"] = "WARNING"

        self.process = subprocess.Popen(
            [sys.executable, "-m", "flask", "--app", "wsgi", "run", "--port", self.config.port],
            cwd=str(BACKEND_DIR),
            env=env,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
        return self._wait_for_server()

    def _wait_for_server(self) -> bool:
        """Wait for server to be responsive."""
        start_time = time.time()
        while time.time() - start_time < self.config.server_startup_timeout:
            try:
                response = httpx.get(f"{self.config.backend_base_url}/api/health", timeout=2.0)
                if response.status_code in (200, 503):  # 503 means degraded but running
                    return True
            except (httpx.ConnectError, httpx.TimeoutException):
                pass
            time.sleep(0.5)
        return False

    def stop(self):
        """Stop the Flask server and cleanup."""
        if self.process:
            self.process.terminate()
            try:
                self.process.wait(timeout=5)
            except subprocess.TimeoutExpired:
                self.process.kill()
            self.process = None

        if self.db_file and self.db_file.parent.exists():
            shutil.rmtree(self.db_file.parent, ignore_errors=True)


# =============================================================================
# TEST DATA FACTORY
# =============================================================================

class LiveDataFactory:
    """Creates orders and stock items through the API."""

    def __init__(self, client: APIClient, seed: Dict[str, int]):
        self.client = client
        self.seed = seed

    def create_order(self, order_type: str = "dine_in", **fields) -> Dict:
        response = self.client.post("/api/orders/", json={"type": order_type, **fields})
        assert_response(
            response, 201,
            scenario=f"Create {order_type} order",
            code_location="backend/catering/routes/orders.py:create_order_route"
        )
        return response.json()["order"]

    def create_dispatchable_order(self, **fields) -> Dict:
        """Delivery order with caterer and airport assigned."""
        return self.create_order(
            "delivery",
            caterer_id=self.seed["caterer_id"],
            delivery_airport_id=self.seed["airport_id"],
            **fields
        )

    def create_stock_item(self, name: str, quantity="10", unit_cost="5.00", minimum_quantity="0") -> Dict:
        response = self.client.post("/api/stock-inventories/", json={
            "name": name,
            "unit": "each",
            "quantity": quantity,
            "unit_cost": unit_cost,
            "minimum_quantity": minimum_quantity,
        })
        assert_response(
            response, 201,
            scenario=f"Create stock item {name}",
            code_location="backend/catering/routes/stock_inventories.py:create_stock_route"
        )
        return response.json()["item"]


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture(scope="session")
def live_config() -> LiveTestConfig:
    return LiveTestConfig()


@pytest.fixture(scope="session")
def live_server(live_config):
    """Running backend; started here unless TEST_EXTERNAL_SERVER=true."""
    if live_config.external_server:
        seed = {
            "airport_id": int(os.environ.get("TEST_AIRPORT_ID", "1")),
            "caterer_id": int(os.environ.get("TEST_CATERER_ID", "1")),
            "customer_id": int(os.environ.get("TEST_CUSTOMER_ID", "1")),
        }
        yield seed
        return

    manager = ServerManager(live_config)
    if not manager.start():
        manager.stop()
        pytest.fail(f"Backend did not start at {live_config.backend_base_url}")
    yield manager.seed
    manager.stop()


@pytest.fixture(scope="function")
def api_client(live_config, live_server) -> APIClient:
    client = APIClient(live_config.backend_base_url, timeout=live_config.request_timeout)
    yield client
    client.close()


@pytest.fixture(scope="function")
def factory(api_client, live_server) -> LiveDataFactory:
    return LiveDataFactory(api_client, live_server)
