"""Locust load testing for the VADAPRO AI gateway.

Usage:
    locust -f tests/locustfile.py --host http://localhost:5050

What to watch:
    - 429 RATE_LIMIT should only appear once a user passes the daily limit
    - queued requests show up as long response times, not errors
    - QUOTA_EXCEEDED means the global token budget for the minute is spent
"""

import random

from locust import HttpUser, between, task

SAMPLE_QUERIES = [
    "what is the average age",
    "how many responses are there",
    "which program has the highest satisfaction",
    "Summarize the open-ended feedback",
    "Compare satisfaction between the 2024 and 2025 cohorts",
    "Please provide a comprehensive breakdown of all response patterns across demographic segments",
]

SAMPLE_SUMMARY = {
    "totalRows": 120,
    "totalColumns": 6,
    "columns": ["age", "program", "year", "satisfaction", "attendance", "feedback"],
}

SAMPLE_STATISTICS = {
    "age": {"mean": 34.2, "min": 18, "max": 71},
    "satisfaction": {"mean": 4.1, "std": 0.8},
}


class AnalystUser(HttpUser):
    """Simulates a program manager chatting about a process dataset."""

    wait_time = between(2, 10)

    def on_start(self):
        self.user_id = f"user-{random.randint(1, 25)}"

    @task(5)
    def analyze(self):
        with self.client.post(
            "/ai/analyze",
            json={
                "query": random.choice(SAMPLE_QUERIES),
                "statistics": SAMPLE_STATISTICS,
                "csvSummary": SAMPLE_SUMMARY,
                "context": {
                    "entryName": "Spring Intake",
                    "sourceFileName": "intake.csv",
                    "responseCount": 120,
                    "year": 2025,
                },
                "userId": self.user_id,
            },
            catch_response=True,
            timeout=120,
        ) as response:
            if response.status_code == 200:
                response.success()
            elif response.status_code == 429:
                error_type = response.json().get("errorType")
                response.failure(f"Limited (429 {error_type})")
            else:
                response.failure(f"Unexpected status: {response.status_code}")

    @task(1)
    def usage(self):
        self.client.get("/ai/usage")

    @task(1)
    def health_check(self):
        self.client.get("/health")
