"""
Tests for the synchronous analytics service and its event-loop thread.
"""

import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from analytics_service.errors import AuthorizationError
from analytics_service.storage import MemoryBackend
from analytics_service.store import AnalyticsStore
from app.analytics.auth import AdminAuthenticator
from app.analytics.services import AnalyticsService


class SlowBackend(MemoryBackend):
    """Memory backend whose writes take a while."""

    def write(self, document):
        time.sleep(0.2)
        super().write(document)


class TestAnalyticsService:
    """Test the thread-safe service facade."""

    def setup_method(self):
        self.backend = MemoryBackend()
        self.service = AnalyticsService(
            AnalyticsStore(self.backend),
            AdminAuthenticator(password="admin")
        )

    def teardown_method(self):
        self.service.close()

    def test_requires_start(self):
        with pytest.raises(RuntimeError):
            self.service.get_data()

    def test_start_is_idempotent(self):
        self.service.start()
        thread = self.service._thread
        self.service.start()
        assert self.service._thread is thread
        assert self.service.running

    def test_close(self):
        self.service.start()
        self.service.close()
        assert not self.service.running
        with pytest.raises(RuntimeError):
            self.service.get_data()

    def test_context_manager(self):
        with self.service as service:
            assert service.running
            service.record_visit({"path": "/"})
        assert not self.service.running
        assert self.backend.read()["totals"]["visits"] == 1

    def test_requests_from_many_threads(self):
        """Test that updates from concurrent request threads are all kept."""
        self.service.start()

        def work(i):
            if i % 2:
                return self.service.record_click({"label": "Go", "visitorId": f"v-{i}"})
            return self.service.record_visit({"visitorId": f"v-{i}", "path": "/"})

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(work, range(60)))

        data = self.service.get_data()
        assert data["totals"] == {"visits": 30, "clicks": 30}
        assert data["clicks"]["Go"]["uniqueVisitors"] == 30

    def test_clear_requires_valid_secret(self):
        self.service.start()
        self.service.record_visit({"path": "/"})

        with pytest.raises(AuthorizationError):
            self.service.clear("wrong")
        assert self.service.get_data()["totals"]["visits"] == 1

        cleared = self.service.clear("admin")
        assert cleared["totals"]["visits"] == 0


class TestAnalyticsServiceShutdown:
    """Test that closing the service finishes work already submitted."""

    def test_close_waits_for_in_flight_visits(self):
        backend = SlowBackend()
        service = AnalyticsService(AnalyticsStore(backend), AdminAuthenticator()).start()

        with ThreadPoolExecutor(max_workers=3) as pool:
            futures = [
                pool.submit(service.record_visit, {"visitorId": f"v-{i}", "path": "/"})
                for i in range(3)
            ]
            time.sleep(0.05)
            service.close()

            results = [future.result(timeout=5) for future in futures]

        assert not service.running
        assert sorted(result["totals"]["visits"] for result in results) == [1, 2, 3]
        assert backend.read()["totals"]["visits"] == 3

    def test_submissions_after_close_are_refused(self):
        service = AnalyticsService(AnalyticsStore(MemoryBackend()), AdminAuthenticator()).start()
        service.close()
        with pytest.raises(RuntimeError):
            service.record_visit({"path": "/"})

    def test_restart_after_close(self):
        backend = MemoryBackend()
        service = AnalyticsService(AnalyticsStore(backend), AdminAuthenticator())
        with service:
            service.record_visit({"path": "/"})
        with service:
            assert service.record_visit({"path": "/"})["totals"]["visits"] == 2
