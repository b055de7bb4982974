"""KeyValidatorUser: downstream services validating API keys (85% of traffic)."""

import secrets

from locust import HttpUser, between, task

from tests.load.helpers import auth_header, forwarded_header, random_seed_key


class KeyValidatorUser(HttpUser):
    """Simulates services checking the keys their callers present."""

    weight = 85
    wait_time = between(0.1, 0.5)

    def on_start(self):
        self.api_key = random_seed_key()
        self.edge_headers = forwarded_header()

    @task(20)
    def validate_seeded_key(self):
        if not self.api_key:
            return
        self.client.get(
            "/api/validate-key",
            headers={**auth_header(self.api_key), **self.edge_headers},
        )

    @task(2)
    def validate_unknown_key(self):
        with self.client.get(
            "/api/validate-key",
            headers={**auth_header(f"dpx_{secrets.token_hex(32)}"), **self.edge_headers},
            name="/api/validate-key [unknown]",
            catch_response=True,
        ) as resp:
            if resp.status_code in (401, 429):
                resp.success()

    @task(1)
    def health(self):
        self.client.get("/health")
