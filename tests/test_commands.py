"""Tests for the command layer shared by the web API and the CLI."""

from __future__ import annotations

from unittest.mock import Mock

import pytest

from papershelf import commands
from papershelf.config import AppConfig
from papershelf.errors import NotFoundError
from papershelf.groups.criteria import ByYear, CreateSmartGroupInput, Favorites, Unread
from papershelf.index.search import FullTextSearchQuery


class TestIndexCommands:
    """Test index_paper and index_all_papers."""

    def test_index_paper_notifies_listeners(self, store, add_paper, pdf_factory) -> None:
        """Should index the PDF and call listeners with the paper id."""
        add_paper("p1", pdf_path=str(pdf_factory("p1.pdf", "hello world")))
        listener = Mock()

        status = commands.index_paper(store, "p1", listeners=[listener])

        assert status.is_complete is True
        listener.assert_called_once_with("p1")
        assert commands.get_paper_index_status(store, "p1") is True

    def test_index_paper_logs_event(self, store, add_paper, pdf_factory, caplog) -> None:
        """Should log the paper-indexed event."""
        add_paper("p1", pdf_path=str(pdf_factory("p1.pdf", "hello")))

        with caplog.at_level("INFO", logger="papershelf.commands"):
            commands.index_paper(store, "p1")

        assert "paper-indexed: p1" in caplog.text

    def test_index_all_papers(self, store, add_paper, pdf_factory) -> None:
        """Should index each pending paper once."""
        add_paper("a", pdf_path=str(pdf_factory("a.pdf", "alpha")))
        add_paper("b", pdf_path=str(pdf_factory("b.pdf", "beta")))
        listener = Mock()

        statuses = commands.index_all_papers(store, listeners=[listener])

        assert len(statuses) == 2
        assert listener.call_count == 2
        assert commands.get_index_stats(store).indexed_papers == 2

    def test_index_unknown_paper(self, store) -> None:
        """Should raise NotFoundError."""
        with pytest.raises(NotFoundError):
            commands.index_paper(store, "ghost")


class TestSearchCommand:
    """Test search_full_text."""

    def test_uses_config_limits(self, store, add_paper) -> None:
        """Should clamp limits with the configured maximum."""
        add_paper("p1")
        store.replace_pages("p1", ["graph", "graph", "graph"])

        response = commands.search_full_text(
            store, FullTextSearchQuery(query="graph", limit=50), config=AppConfig(max_limit=2)
        )

        assert response.total == 3
        assert len(response.results) == 2

    def test_neural_example(self, store, add_paper) -> None:
        """Should find the single page mentioning the term."""
        add_paper("p1", title="Survey")
        store.replace_pages("p1", ["Introduction", "neural networks are used", "Conclusion"])

        response = commands.search_full_text(store, FullTextSearchQuery(query="neural"))

        assert response.total == 1
        assert response.results[0].page_number == 2
        assert "<mark>neural</mark>" in response.results[0].snippet


class TestSmartGroupCommands:
    """Test smart group commands."""

    def test_get_smart_group_papers(self, store, add_paper) -> None:
        """Should evaluate criteria over every paper."""
        add_paper("fav", importance=5, year=2023)
        add_paper("plain", importance=2, year=2023)

        papers = commands.get_smart_group_papers(store, [Favorites()])

        assert [paper.id for paper in papers] == ["fav"]

    def test_default_match_mode_is_and(self, store, add_paper) -> None:
        """Should combine with AND when no mode is given."""
        add_paper("p1", year=2023, is_read=True)
        add_paper("p2", year=2020, is_read=False)

        assert commands.get_smart_group_papers(store, [ByYear(value=2023), Unread()]) == []
        assert len(commands.get_smart_group_papers(store, [ByYear(value=2023), Unread()], "or")) == 2

    def test_predefined_groups(self) -> None:
        """Should return the nine built-in groups."""
        assert len(commands.get_predefined_smart_groups()) == 9

    def test_create_and_list(self, store) -> None:
        """Should assign an id and timestamp and persist the group."""
        group = commands.create_smart_group(
            store, CreateSmartGroupInput(name="Favs", criteria=[Favorites()], match_mode="or")
        )

        assert group.id
        assert group.created_at
        assert commands.get_smart_groups(store) == [group]

    def test_delete(self, store) -> None:
        """Should delete an existing group and reject unknown ids."""
        group = commands.create_smart_group(store, CreateSmartGroupInput(name="x"))

        commands.delete_smart_group(store, group.id)

        assert commands.get_smart_groups(store) == []
        with pytest.raises(NotFoundError):
            commands.delete_smart_group(store, group.id)
