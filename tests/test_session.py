"""Tests for the CertMerge session helpers, using a plain dict as state."""

import io
import sys
import zipfile
from pathlib import Path
from types import SimpleNamespace

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from cert_merge.config import MergeSettings
from cert_merge.linked_files import LinkRegistry
from cert_merge.merge import CertificateTemplate
from cert_merge.records import RecordSet
from CertMerge.utils.session import (
    clear_artifacts,
    init_session,
    is_ready,
    load_links,
    merge_job,
    move,
    reset_merge_session,
    set_records,
    set_template,
    store_archive,
    sync_linked_files,
    template_deleted,
    upload_id,
)


def _template():
    return CertificateTemplate(name="T", binary=b"docx", html="<p>{name}</p>", placeholders=["name"])


def _upload(name, data):
    return SimpleNamespace(name=name, size=len(data), getvalue=lambda: data)


def test_init_session_sets_defaults_once() -> None:
    """Defaults are filled in without overwriting existing values."""

    state = init_session({})
    assert state["template"] is None
    assert state["records"] == []
    assert state["current_index"] == 0

    state["current_index"] = 4
    init_session(state)
    assert state["current_index"] == 4


def test_ready_needs_template_and_records() -> None:
    state = init_session({})
    assert not is_ready(state)

    set_template(_template(), "123", state)
    assert not is_ready(state)

    set_records(RecordSet(columns=["name"], records=[{"name": "Ada"}, {"name": "Alan"}]), "people.csv", state)
    assert is_ready(state)
    assert state["range_start"] == 1
    assert state["range_end"] == 2
    assert state["data_name"] == "people.csv"


def test_new_inputs_drop_generated_files() -> None:
    """Cached downloads are dropped when the template changes."""

    state = init_session({})
    state["all_zip"] = b"zip"
    state["print_pdf"] = b"pdf"

    set_template(_template(), None, state)

    assert "all_zip" not in state
    assert "print_pdf" not in state

    state["range_zip"] = b"zip"
    clear_artifacts(state)
    assert "range_zip" not in state
    assert state["template"] is not None


def test_loading_a_template_closes_the_save_dialog() -> None:
    """A pending save dialog does not carry over to a loaded template."""

    state = init_session({})
    state["show_save_dialog"] = True

    set_template(_template(), "42", state)

    assert state["show_save_dialog"] is False
    assert state["selected_template_id"] == "42"


def test_move_is_clamped() -> None:
    state = init_session({})
    set_records(RecordSet(columns=["name"], records=[{"name": "a"}, {"name": "b"}, {"name": "c"}]), "", state)

    assert move(-1, state) == 0
    assert move(1, state) == 1
    assert move(5, state) == 2


def test_new_records_reset_the_index() -> None:
    state = init_session({})
    set_records(RecordSet(records=[{"n": 1}, {"n": 2}]), "", state)
    move(1, state)

    set_records(RecordSet(records=[{"n": 3}]), "", state)

    assert state["current_index"] == 0


def test_template_deleted_clears_selected_template_only() -> None:
    """Only deleting the loaded library entry clears the working template."""

    state = init_session({})
    set_template(_template(), "1", state)

    template_deleted("2", state)
    assert state["template"] is not None

    template_deleted("1", state)
    assert state["template"] is None
    assert state["selected_template_id"] is None


def test_merge_job_follows_session() -> None:
    """The job picks up the session cursor, clamped to the records."""

    state = init_session({})
    set_template(_template(), None, state)
    set_records(RecordSet(records=[{"name": "Ada"}, {"name": "Alan"}]), "", state)
    state["current_index"] = 7

    job = merge_job(MergeSettings(), state)

    assert job.current_index == 1
    assert state["current_index"] == 1
    assert job.preview_html() == "<p>Alan</p>"


def test_reset_keeps_linked_files_and_renews_upload_keys() -> None:
    """Starting over forgets inputs but keeps links and rotates uploaders."""

    state = init_session({})
    state["linked"] = {}
    set_template(_template(), "1", state)
    set_records(RecordSet(records=[{"name": "Ada"}]), "people.csv", state)
    state["range_zip"] = b"zip"
    state["docx_upload_id"] = "award.docx:abc"

    reset_merge_session(state)

    assert state["template"] is None
    assert state["records"] == []
    assert state["docx_upload_id"] is None
    assert "range_zip" not in state
    assert state["linked"] == {}
    assert state["upload_round"] == 1

    reset_merge_session(state)
    assert state["upload_round"] == 2


def test_upload_id_changes_with_content() -> None:
    """An edited file with the same name and size counts as a new upload."""

    first = upload_id(_upload("people.csv", b"name\nAda\n"))
    edited = upload_id(_upload("people.csv", b"name\nBob\n"))
    again = upload_id(_upload("people.csv", b"name\nAda\n"))

    assert first != edited
    assert first == again


def test_store_archive_zips_documents() -> None:
    state = init_session({})

    made = store_archive("range_zip", iter([("a.docx", b"1"), ("b.docx", b"2")]), state)

    assert made == 2
    with zipfile.ZipFile(io.BytesIO(state["range_zip"])) as zf:
        assert zf.namelist() == ["a.docx", "b.docx"]


def test_store_archive_skips_empty_exports() -> None:
    """No archive is offered when nothing was generated."""

    state = init_session({})
    state["all_zip"] = b"stale"

    made = store_archive("all_zip", iter([]), state)

    assert made == 0
    assert "all_zip" not in state


def test_sync_linked_files_reloads_changed_data(tmp_path) -> None:
    """Linked data is loaded once, then again only after it changes."""

    data = tmp_path / "people.csv"
    data.write_text("name\nAda\n")
    registry = LinkRegistry(tmp_path / "links.json")
    registry.link("data", data)
    state = init_session({})
    settings = MergeSettings(links_path=registry.path)

    assert set(load_links(registry, state)) == {"data"}
    assert sync_linked_files(settings, state) == ["data"]
    assert state["records"] == [{"name": "Ada"}]
    assert sync_linked_files(settings, state) == []

    data.write_text("name\nAda\nAlan\n")
    assert sync_linked_files(settings, state) == ["data"]
    assert state["records"] == [{"name": "Ada"}, {"name": "Alan"}]
    assert state["data_name"] == "people.csv"
