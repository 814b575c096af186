"""
Tests for the SQLite database manager.
"""

from storyreader.tests.builders import AUTHOR, READER, add_choice, add_part


class TestStoryVisibility:
    def test_published_story_visible_to_anyone(self, db, linear_story):
        story = db.get_visible_story(linear_story, READER)
        assert story is not None
        assert story["status"] == "published"

    def test_draft_visible_only_to_author(self, db):
        db.save_story({"id": "draft", "title": "Draft", "author_id": AUTHOR})
        assert db.get_visible_story("draft", READER) is None
        assert db.get_visible_story("draft", None) is None
        assert db.get_visible_story("draft", AUTHOR)["id"] == "draft"

    def test_missing_story(self, db):
        assert db.get_visible_story("nope", READER) is None


class TestStartPart:
    def test_flagged_start_part(self, db, linear_story):
        assert db.get_start_part(linear_story)["id"] == "A"

    def test_earliest_flagged_start_wins(self, db):
        db.save_story({"id": "multi", "title": "Multi", "status": "published"})
        add_part(db, "multi", "first", 0)
        add_part(db, "multi", "late-start", 5, is_start=True)
        add_part(db, "multi", "early-start", 2, is_start=True)
        assert db.get_start_part("multi")["id"] == "early-start"

    def test_falls_back_to_earliest_part(self, db):
        db.save_story({"id": "noflag", "title": "No flag", "status": "published"})
        add_part(db, "noflag", "second", 10)
        add_part(db, "noflag", "first", 1)
        assert db.get_start_part("noflag")["id"] == "first"

    def test_created_at_tie_broken_by_id(self, db):
        db.save_story({"id": "tie", "title": "Tie", "status": "published"})
        add_part(db, "tie", "b-part", 0)
        add_part(db, "tie", "a-part", 0)
        assert db.get_start_part("tie")["id"] == "a-part"

    def test_story_without_parts(self, db, empty_story):
        assert db.get_start_part(empty_story) is None


class TestChoices:
    def test_choices_ordered_by_index_then_id(self, db, linear_story):
        add_choice(db, "B", "zeta", None, order_index=0)
        add_choice(db, "B", "alpha", None, order_index=0)
        add_choice(db, "B", "first", None, order_index=-1)
        ids = [c["id"] for c in db.list_choices("B")]
        assert ids == ["first", "alpha", "zeta"]

    def test_delete_choice(self, db, linear_story):
        assert db.delete_choice("go") is True
        assert db.list_choices("A") == []
        assert db.delete_choice("go") is False


class TestProgress:
    def test_upsert_creates_once(self, db, linear_story):
        first = db.upsert_progress(READER, linear_story)
        second = db.upsert_progress(READER, linear_story)
        assert first["id"] == second["id"]
        assert db.count_progress(READER, linear_story) == 1

    def test_upsert_keeps_existing_position(self, db, linear_story):
        progress = db.upsert_progress(READER, linear_story)
        db.update_progress(progress["id"], {"current_part_id": "B", "completed": True})
        again = db.upsert_progress(READER, linear_story)
        assert again["current_part_id"] == "B"
        assert again["completed"] is True

    def test_update_ignores_identity_fields(self, db, linear_story):
        progress = db.upsert_progress(READER, linear_story)
        db.update_progress(progress["id"], {"user_id": "someone-else", "current_part_id": "B"})
        stored = db.get_progress(READER, linear_story)
        assert stored["current_part_id"] == "B"

    def test_update_missing_progress(self, db):
        assert db.update_progress("missing", {"completed": True}) is False

    def test_reset_progress(self, db, linear_story):
        progress = db.upsert_progress(READER, linear_story)
        db.update_progress(progress["id"], {"current_part_id": "B", "completed": True})
        assert db.reset_progress(progress["id"]) is True
        stored = db.get_progress(READER, linear_story)
        assert stored["current_part_id"] is None
        assert stored["completed"] is False


class TestReaderPath:
    def test_save_and_overwrite(self, db, linear_story):
        db.save_reader_path(READER, linear_story, [{"part_id": "A"}])
        db.save_reader_path(READER, linear_story, [{"part_id": "A"}, {"part_id": "B"}])
        saved = db.get_reader_path(READER, linear_story)
        assert [e["part_id"] for e in saved["story_path"]] == ["A", "B"]

    def test_missing_path(self, db, linear_story):
        assert db.get_reader_path(READER, linear_story) is None


class TestAnonymousReader:
    def test_ownerless_draft_hidden_from_anonymous_reader(self, db):
        db.save_story({"id": "orphan", "title": "Orphan"})
        assert db.get_visible_story("orphan", None) is None
