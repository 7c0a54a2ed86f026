"""Tests for the exclusion list."""

from deviation_import.exclusions import add_exclusion, list_exclusions, remove_exclusion


class TestExclusions:
    """Test adding, removing and listing exclusions."""

    def test_add_and_list(self, store):
        """An added exclusion is persisted with its reason."""
        assert add_exclusion(store, "123456", "Duplicate upload")

        entries = list_exclusions(store)
        assert [(e.numeric_id, e.reason) for e in entries] == [("123456", "Duplicate upload")]
        assert '"excludedAt"' in store.exclusions_path.read_text()

    def test_duplicate_not_re_added(self, store, caplog):
        """Excluding the same id twice warns and keeps one entry."""
        add_exclusion(store, "123456")
        assert not add_exclusion(store, "123456", "Again")

        assert len(list_exclusions(store)) == 1
        assert "ID 123456 is already excluded." in caplog.text

    def test_remove(self, store):
        """Removing an excluded id drops it from the list."""
        add_exclusion(store, "123456")
        add_exclusion(store, "654321")

        assert remove_exclusion(store, "123456")
        assert [e.numeric_id for e in list_exclusions(store)] == ["654321"]

    def test_remove_absent_warns(self, store, caplog):
        """Removing an id that is not excluded only warns."""
        assert not remove_exclusion(store, "999999")
        assert "ID 999999 was not in the exclusion list." in caplog.text
        assert not store.exclusions_path.exists()
