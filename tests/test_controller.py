"""
Tests for brandvision.controller — state transitions, sequential image loop,
archive reconciliation, stale results and keyword edits.
"""
import asyncio

import pytest

from brandvision.analyzer import AnalysisError
from brandvision.archive import ArchiveStore
from brandvision.controller import (
    NoActiveSessionError,
    SessionController,
    SessionState,
    normalize_keyword,
)
from brandvision.imager import EmptyImageError, ImageGenerationError

from conftest import FakeAnalyzer, FakeImageGenerator, MemorySlot, make_response, make_session


def _controller(store, analyzer=None, images=None, progress=None):
    return SessionController(
        analyzer=analyzer or FakeAnalyzer(make_response()),
        image_generator=images or FakeImageGenerator(),
        store=store,
        on_progress=progress,
    )


class TestSubmit:

    def test_end_to_end_partial_images(self, store):
        images = FakeImageGenerator({"c1": EmptyImageError("no image"), "c2": "data:image/png;base64,TWO"})
        analyzer = FakeAnalyzer(make_response(("Instagram", "Website")))
        controller = _controller(store, analyzer, images)

        session = controller.submit("example.com", "Affiliate Sales", ["Instagram", "Website"])

        assert analyzer.calls == [("example.com", "Affiliate Sales", ["Instagram", "Website"])]
        assert images.calls == ["c1", "c2"]
        assert controller.state is SessionState.READY
        assert session.images == {"c2": "data:image/png;base64,TWO"}
        assert store.sessions[0].id == session.id
        assert store.sessions[0].images == {"c2": "data:image/png;base64,TWO"}
        assert store.sessions[0].url == "example.com"

    def test_stub_archived_before_any_image(self, store):
        seen = []

        class RecordingImages(FakeImageGenerator):
            def generate(self, concept):
                archived = store.sessions[0]
                seen.append((concept.id, dict(archived.images), len(archived.data.concepts)))
                return super().generate(concept)

        controller = _controller(store, images=RecordingImages())
        controller.submit("example.com", "Affiliate Sales", ["Instagram", "Website"])

        assert seen[0] == ("c1", {}, 2)
        assert seen[1] == ("c2", {"c1": "data:image/png;base64,AAAA"}, 2)

    @pytest.mark.parametrize("outcomes, expected", [
        ({}, {"c1", "c2", "c3"}),
        ({"c1": ImageGenerationError("x")}, {"c2", "c3"}),
        ({"c2": RuntimeError("boom")}, {"c1", "c3"}),
        ({"c1": EmptyImageError("e"), "c3": EmptyImageError("e")}, {"c2"}),
        ({"c1": EmptyImageError("e"), "c2": EmptyImageError("e"), "c3": EmptyImageError("e")}, set()),
    ])
    def test_images_match_exactly_the_successes(self, store, outcomes, expected):
        response = make_response(("Instagram", "LinkedIn", "Website"))
        controller = _controller(store, FakeAnalyzer(response), FakeImageGenerator(outcomes))

        session = controller.submit("example.com", "Lead Generation", ["Instagram", "LinkedIn", "Website"])

        assert set(session.images) == expected
        assert set(store.get(session.id).images) == expected
        assert controller.state is SessionState.READY

    def test_analysis_failure(self, store):
        analyzer = FakeAnalyzer(error=AnalysisError("quota exhausted"))
        images = FakeImageGenerator()
        controller = _controller(store, analyzer, images)

        assert controller.submit("example.com", "Affiliate Sales", ["Instagram"]) is None
        assert controller.state is SessionState.FAILED
        assert controller.error == "quota exhausted"
        assert controller.active_id is None
        assert store.sessions == []
        assert images.calls == []

    def test_failure_without_message_gets_default(self, store):
        controller = _controller(store, FakeAnalyzer(error=RuntimeError()))
        controller.submit("example.com", "Affiliate Sales", ["Instagram"])
        assert controller.error == "Analysis failed."

    def test_new_submit_clears_previous_state(self, store):
        controller = _controller(store)
        first = controller.submit("one.com", "Affiliate Sales", ["Instagram", "Website"])
        controller.analyzer = FakeAnalyzer(error=AnalysisError("down"))

        controller.submit("two.com", "Affiliate Sales", ["Instagram"])

        assert controller.result is None
        assert controller.images == {}
        assert controller.active_id is None
        # previous session stays archived untouched
        assert store.get(first.id).images == first.images

    def test_progress_messages(self, store):
        messages = []
        controller = _controller(store, progress=messages.append)
        controller.submit("example.com", "Affiliate Sales", ["Instagram", "Website"])
        assert messages == [
            "Analyzing brand DNA...",
            "Generating platform visuals...",
            "Creating for Instagram...",
            "Creating for Website...",
        ]

    def test_run_async(self, store):
        controller = _controller(store)
        session = asyncio.run(controller.run_async("example.com", "Affiliate Sales", ["Instagram", "Website"]))
        assert set(session.images) == {"c1", "c2"}


class TestStaleResults:

    def test_late_image_for_inactive_session_discarded(self, store):
        controller = _controller(store)
        old = controller.submit("old.com", "Affiliate Sales", ["Instagram", "Website"])
        new = controller.on_analysis_complete("new.com", make_response())

        assert controller.on_image_arrived(old.id, "c1", "late") is False
        assert controller.images == {}
        assert store.get(new.id).images == {}
        assert store.get(old.id).images["c1"] != "late"

    def test_loop_stops_when_session_replaced(self, store):
        controller = _controller(store)
        replaced = {}

        class SwitchingImages(FakeImageGenerator):
            def generate(self, concept):
                result = super().generate(concept)
                if concept.id == "c1":
                    replaced["new"] = controller.on_analysis_complete("new.com", make_response())
                return result

        controller.image_generator = SwitchingImages()
        old = controller.submit("old.com", "Affiliate Sales", ["Instagram", "Website"])

        assert controller.image_generator.calls == ["c1"]
        assert controller.active_id == replaced["new"].id
        assert store.get(replaced["new"].id).images == {}
        assert old.images == {}


class TestActivate:

    def test_activate_restores_without_client_calls(self, store):
        analyzer = FakeAnalyzer(make_response())
        images = FakeImageGenerator()
        controller = _controller(store, analyzer, images)
        archived = make_session("arch", images={"c1": "img"})

        controller.activate(archived)

        assert controller.state is SessionState.READY
        assert controller.active_id == "arch"
        assert controller.images == {"c1": "img"}
        assert controller.result == archived.data
        assert analyzer.calls == []
        assert images.calls == []

    def test_reset_returns_to_idle_and_keeps_archive(self, store):
        controller = _controller(store)
        session = controller.submit("example.com", "Affiliate Sales", ["Instagram", "Website"])
        controller.reset()
        assert controller.state is SessionState.IDLE
        assert controller.active_session() is None
        assert store.get(session.id) is not None


class TestKeywords:

    def setup_method(self):
        self.store = ArchiveStore(MemorySlot())
        self.controller = _controller(self.store)
        self.controller.activate(make_session("k"))

    @pytest.mark.parametrize("raw, expected", [
        ("#summer", "summer"),
        ("  #summer sale ", "summer sale"),
        ("##double", "#double"),
        ("plain", "plain"),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_keyword(raw) == expected

    def test_add_keyword_archives_session(self):
        assert self.controller.add_keyword("#candle gifts") is True
        assert self.controller.keywords[-1] == "candle gifts"
        assert self.store.get("k").data.analysis.keywords == ["soy candles", "aromatherapy", "candle gifts"]
        assert self.store.sessions[0].id == "k"

    def test_add_duplicate_is_noop(self):
        assert self.controller.add_keyword("#soy candles") is False
        assert self.store.sessions == []

    def test_duplicate_check_is_case_sensitive(self):
        assert self.controller.add_keyword("Soy Candles") is True

    def test_add_empty_is_noop(self):
        assert self.controller.add_keyword("   ") is False
        assert self.controller.add_keyword("#") is False

    def test_remove_keyword(self):
        assert self.controller.remove_keyword("aromatherapy") is True
        assert self.controller.keywords == ["soy candles"]
        assert self.store.get("k").data.analysis.keywords == ["soy candles"]

    def test_remove_accepts_hashtag_form(self):
        assert self.controller.remove_keyword(" #aromatherapy") is True
        assert self.controller.keywords == ["soy candles"]
        assert self.store.get("k").data.analysis.keywords == ["soy candles"]

    def test_remove_missing_is_noop(self):
        assert self.controller.remove_keyword("nope") is False
        assert self.controller.keywords == ["soy candles", "aromatherapy"]
        assert self.store.sessions == []

    def test_keywords_edited_dedupes(self):
        assert self.controller.on_keywords_edited(["a", "b", "a"]) == ["a", "b"]
        assert self.store.get("k").data.analysis.keywords == ["a", "b"]

    def test_edit_keeps_images(self):
        self.controller.activate(make_session("k", images={"c1": "img"}))
        self.controller.add_keyword("new")
        assert self.store.get("k").images == {"c1": "img"}

    def test_edits_without_active_session_rejected(self):
        self.controller.reset()
        with pytest.raises(NoActiveSessionError):
            self.controller.add_keyword("x")
        with pytest.raises(NoActiveSessionError):
            self.controller.remove_keyword("x")
        with pytest.raises(NoActiveSessionError):
            self.controller.on_keywords_edited(["x"])
