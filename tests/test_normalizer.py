"""
Tests for statistics document normalization.
"""

from analytics_service.models import CURRENT_VERSION, StatisticsDocument
from analytics_service.normalizer import default_document, normalize


MESSY_DOCUMENT = {
    "totals": {"visits": "12", "clicks": -4},
    "visitors": {
        "v-1": {
            "id": "someone-else",
            "visitCount": "3",
            "firstVisit": "2024-01-01T00:00:00Z",
            "lastVisit": 1_700_000_000_000,
            "lastPath": "  /docs  ",
            "languages": {"en-US": "2", "de": "x"},
        },
        "broken": "not a record",
    },
    "pages": {
        "/docs": {
            "title": "",
            "visits": 2.9,
            "visitors": {"v-1": 2, "v-2": 1},
            "uniqueVisitors": 99,
            "referrers": {"Direct": 2},
        },
        "/junk": 7,
    },
    "visits": [{"path": "/a"}, "junk", None, {"path": "/b", "timestamp": "bad"}, {"path": ""}],
    "clicks": {
        "Sign up": {"count": "5", "visitors": {"v-1": 1}, "uniqueVisitors": 0, "pages": []},
    },
    "clickEvents": [{"label": "  "}, {"label": "Buy", "href": 12}],
    "lastUpdated": "yesterday",
    "version": 0,
}


class TestDefaultDocument:
    """Test the default document shape."""

    def test_default_document(self):
        doc = default_document()
        assert doc == {
            "totals": {"visits": 0, "clicks": 0},
            "visitors": {},
            "pages": {},
            "visits": [],
            "clicks": {},
            "clickEvents": [],
            "lastUpdated": None,
            "version": CURRENT_VERSION,
        }

    def test_non_mappings_yield_default(self):
        for raw in (None, [], "text", 42, True):
            assert normalize(raw) == default_document()


class TestNormalize:
    """Test field-level repair of untrusted documents."""

    def setup_method(self):
        self.doc = normalize(MESSY_DOCUMENT)

    def test_totals(self):
        assert self.doc["totals"] == {"visits": 12, "clicks": 0}

    def test_visitor_records(self):
        assert list(self.doc["visitors"]) == ["v-1"]
        visitor = self.doc["visitors"]["v-1"]
        assert visitor["id"] == "v-1"
        assert visitor["visitCount"] == 3
        assert visitor["firstVisit"] == "2024-01-01T00:00:00.000Z"
        assert visitor["lastVisit"] == "2023-11-14T22:13:20.000Z"
        assert visitor["lastPath"] == "/docs"
        assert visitor["languages"] == {"en-US": 2, "de": 0}

    def test_page_records(self):
        assert list(self.doc["pages"]) == ["/docs"]
        page = self.doc["pages"]["/docs"]
        assert page["path"] == "/docs"
        assert page["title"] == "/docs"
        assert page["visits"] == 2
        assert page["clicks"] == 0
        assert page["uniqueVisitors"] == 2
        assert page["lastVisit"] is None

    def test_click_aggregates(self):
        entry = self.doc["clicks"]["Sign up"]
        assert entry["label"] == "Sign up"
        assert entry["count"] == 5
        assert entry["uniqueVisitors"] == 1
        assert entry["pages"] == {}

    def test_event_logs(self):
        assert [visit["path"] for visit in self.doc["visits"]] == ["/a", "/b", "/"]
        assert self.doc["visits"][1]["timestamp"] is None
        assert self.doc["visits"][0]["title"] == "/a"
        assert self.doc["visits"][0]["referrer"] == "Direct"
        assert self.doc["clickEvents"][0]["label"] == "Unknown"
        assert self.doc["clickEvents"][1]["href"] == "12"

    def test_metadata(self):
        assert self.doc["lastUpdated"] is None
        assert self.doc["version"] == CURRENT_VERSION

    def test_idempotent(self):
        """Test that normalizing a normalized document changes nothing."""
        assert normalize(self.doc) == self.doc
        assert normalize(default_document()) == default_document()

    def test_input_not_modified(self):
        assert MESSY_DOCUMENT["pages"]["/docs"]["uniqueVisitors"] == 99
        assert MESSY_DOCUMENT["visitors"]["v-1"]["id"] == "someone-else"


class TestEventBounds:
    """Test that the event logs keep only the most recent entries."""

    def test_visits_trimmed_to_most_recent(self):
        raw = {"visits": [{"path": f"/p{i}"} for i in range(10)]}
        doc = normalize(raw, max_events=3)
        assert [visit["path"] for visit in doc["visits"]] == ["/p7", "/p8", "/p9"]

    def test_click_events_trimmed(self):
        raw = {"clickEvents": [{"label": f"b{i}"} for i in range(600)]}
        doc = normalize(raw)
        assert len(doc["clickEvents"]) == 500
        assert doc["clickEvents"][-1]["label"] == "b599"

    def test_totals_not_bounded_by_log(self):
        raw = {"totals": {"visits": 1000}, "visits": [{"path": "/"}] * 5}
        doc = normalize(raw, max_events=2)
        assert doc["totals"]["visits"] == 1000
        assert len(doc["visits"]) == 2


class TestStatisticsDocumentModel:
    """Test the model layer directly."""

    def test_from_raw_accepts_model(self):
        model = StatisticsDocument.from_raw({"totals": {"visits": 2}})
        again = StatisticsDocument.from_raw(model)
        assert again.totals.visits == 2

    def test_snake_case_field_names(self):
        model = StatisticsDocument.from_raw({"totals": {"clicks": 1}})
        assert model.click_events == []
        assert model.to_dict()["clickEvents"] == []


class TestKeyCaps:
    """Test that mapping keys obey the same caps as the fields they hold."""

    def test_record_keys_are_capped(self):
        long_id = "v" * 5000
        long_path = "/" + "p" * 5000
        long_label = "Click  " + "x" * 5000
        doc = normalize({
            "visitors": {long_id: {"visitCount": 1}, "   ": {"visitCount": 2}},
            "pages": {long_path: {"visits": 1}},
            "clicks": {long_label: {"count": 1}},
        })

        assert list(doc["visitors"]) == ["v" * 120]
        assert doc["visitors"]["v" * 120]["id"] == "v" * 120
        (path,) = doc["pages"]
        assert len(path) == 400
        assert doc["pages"][path]["path"] == path
        (label,) = doc["clicks"]
        assert len(label) == 160
        assert label.startswith("Click x")

    def test_counter_keys_are_capped(self):
        doc = normalize({
            "visitors": {"v-1": {"languages": {"l" * 1000: 1}}},
            "pages": {"/": {
                "visitors": {"a" * 1000: 1},
                "referrers": {"r" * 1000: 1},
            }},
            "clicks": {"Go": {
                "pages": {"/" * 1000: 1},
                "visitors": {"b" * 1000: 1},
                "hrefs": {"h" * 1000: 1},
            }},
        })

        assert doc["visitors"]["v-1"]["languages"] == {"l" * 32: 1}
        page = doc["pages"]["/"]
        assert page["visitors"] == {"a" * 120: 1}
        assert page["uniqueVisitors"] == 1
        assert page["referrers"] == {"r" * 200: 1}
        click = doc["clicks"]["Go"]
        assert click["pages"] == {"/" * 400: 1}
        assert click["visitors"] == {"b" * 120: 1}
        assert click["hrefs"] == {"h" * 500: 1}

    def test_capped_output_is_stable(self):
        doc = normalize({"pages": {"/" + "p" * 5000: {"visitors": {"a" * 1000: 3}}}})
        assert normalize(doc) == doc
