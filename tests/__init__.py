# Catering Backend Live Test Suite
#
# This package contains:
# - API tests against a running server (pytest + httpx)
# - Stress/load tests (Locust)
#
# Run with: python -m tests.run [smoke|api|stress]
