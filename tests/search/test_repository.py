from __future__ import annotations

from pathlib import Path

import pytest

from recindex.indexing.models import DocumentKind, StructuralDocument
from recindex.search.repository import SearchRepository


def _tree() -> StructuralDocument:
    root = StructuralDocument(pi="W1", kind=DocumentKind.WORK, root_pi="W1")
    root.add_field("LABEL", "Stadtchronik")
    root.add_field("DEFAULT", "Stadtchronik")
    root.add_field("SOURCEDOCFORMAT", "METS")
    chapter = StructuralDocument(pi="W1_c1", kind=DocumentKind.STRUCTURE)
    chapter.add_field("LABEL", "Brand von 1842")
    chapter.add_field("DEFAULT", "Stadtchronik Brand von 1842")
    root.add_child(chapter)
    section = StructuralDocument(pi="W1_c1_s1", kind=DocumentKind.STRUCTURE)
    section.add_field("LABEL", "Wiederaufbau")
    chapter.add_child(section)
    page = StructuralDocument(pi="W1_page_0001", kind=DocumentKind.PAGE)
    page.add_field("ORDER", "1")
    page.add_field("FULLTEXT", "Die Feuerwehr rückte aus")
    root.add_child(page)
    return root


def test_schema_initialization_creates_expected_tables(tmp_path: Path) -> None:
    with SearchRepository(tmp_path / "index.db") as repo:
        rows = repo.connection.execute("SELECT name FROM sqlite_master WHERE type IN ('table', 'trigger')").fetchall()
        names = {row["name"] for row in rows}

    assert {"documents", "documents_fts", "documents_ai", "documents_ad", "documents_au"} <= names


def test_upsert_and_load_tree_round_trip(tmp_path: Path) -> None:
    root = _tree()

    with SearchRepository(tmp_path / "index.db") as repo:
        written = repo.upsert_documents(root.iter_tree())
        loaded = repo.load_tree("W1")

    assert written == 4
    assert loaded is not None

    def _shape(node: StructuralDocument) -> tuple:
        return (node.pi, node.kind, node.fields, node.parent_pi, [_shape(child) for child in node.children])

    assert _shape(loaded) == _shape(root)
    assert [child.pi for child in loaded.children] == ["W1_c1", "W1_page_0001"]
    assert loaded.children[0].children[0].root_pi == "W1"


def test_upsert_replaces_by_pi(tmp_path: Path) -> None:
    with SearchRepository(tmp_path / "index.db") as repo:
        repo.upsert_documents(_tree().iter_tree())
        changed = StructuralDocument(pi="W1_c1", kind=DocumentKind.STRUCTURE, parent_pi="W1", root_pi="W1")
        changed.add_field("LABEL", "Großbrand")
        repo.upsert_documents([changed])

        document = repo.get_document("W1_c1")
        assert document is not None
        assert document.fields == {"LABEL": ["Großbrand"]}
        assert repo.count_documents() == 4
        assert [hit.pi for hit in repo.search("Großbrand")] == ["W1_c1"]
        assert repo.search("Brand") == []


def test_failed_batch_is_rolled_back(tmp_path: Path) -> None:
    def _documents():
        yield StructuralDocument(pi="A1", kind=DocumentKind.WORK)
        raise RuntimeError("spool corrupted")

    with SearchRepository(tmp_path / "index.db") as repo:
        with pytest.raises(RuntimeError, match="spool corrupted"):
            repo.upsert_documents(_documents())

        assert repo.count_documents() == 0


def test_search_matches_labels_and_fulltext(tmp_path: Path) -> None:
    with SearchRepository(tmp_path / "index.db") as repo:
        repo.upsert_documents(_tree().iter_tree())

        assert [hit.pi for hit in repo.search("Feuerwehr")] == ["W1_page_0001"]
        assert {hit.pi for hit in repo.search("stadtchronik")} == {"W1", "W1_c1"}
        assert repo.search('"quoted') == []
        assert repo.search("   ") == []
        with pytest.raises(ValueError, match="limit"):
            repo.search("x", limit=0)


def test_delete_record_and_documents(tmp_path: Path) -> None:
    with SearchRepository(tmp_path / "index.db") as repo:
        repo.upsert_documents(_tree().iter_tree())

        assert repo.delete_documents(["W1_page_0001"]) == 1
        assert repo.delete_documents([]) == 0
        assert repo.count_documents(root_pi="W1") == 3
        assert repo.delete_record("W1") == 3
        assert repo.count_documents() == 0
        assert repo.search("Stadtchronik") == []


def test_find_volumes_only_returns_volumes(tmp_path: Path) -> None:
    volume = StructuralDocument(pi="V1", kind=DocumentKind.VOLUME, anchor_pi="A1", root_pi="V1")
    other = StructuralDocument(pi="V0", kind=DocumentKind.VOLUME, anchor_pi="A1", root_pi="V0")
    work = StructuralDocument(pi="W9", kind=DocumentKind.WORK, root_pi="W9")

    with SearchRepository(tmp_path / "index.db") as repo:
        repo.upsert_documents([volume, other, work])

        assert [document.pi for document in repo.find_volumes("A1")] == ["V0", "V1"]
        assert repo.find_volumes("missing") == []
        assert repo.get_document("missing") is None
        assert repo.load_tree("missing") is None


def test_empty_pi_is_rejected(tmp_path: Path) -> None:
    with SearchRepository(tmp_path / "index.db") as repo:
        with pytest.raises(ValueError, match="PI"):
            repo.upsert_documents([StructuralDocument(pi="", kind=DocumentKind.WORK)])
        assert repo.count_documents() == 0


def test_maintenance_commands(tmp_path: Path) -> None:
    with SearchRepository(tmp_path / "index.db") as repo:
        repo.upsert_documents(_tree().iter_tree())
        repo.run_maintenance("optimize")
        repo.run_maintenance("rebuild")

        assert [hit.pi for hit in repo.search("Wiederaufbau")] == ["W1_c1_s1"]
        with pytest.raises(ValueError, match="Unsupported"):
            repo.run_maintenance("vacuum")
