"""Session state helpers for the CertMerge app."""

from __future__ import annotations

import hashlib
import logging
from typing import Iterable, List, MutableMapping, Optional

from cert_merge.config import MergeSettings
from cert_merge.linked_files import LinkRegistry, poll_changes
from cert_merge.merge import CertificateTemplate, Document, MailMerge, build_zip, template_name_from_filename
from cert_merge.records import RecordSet, load_records

logger = logging.getLogger(__name__)

DEFAULTS = {
    "template": None,
    "records": [],
    "columns": [],
    "data_name": "",
    "current_index": 0,
    "selected_template_id": None,
    "show_save_dialog": False,
    "template_name": "",
    "pending_delete": None,
    "docx_upload_id": None,
    "data_upload_id": None,
    "range_start": 1,
    "range_end": 1,
    "linked": None,
    "upload_round": 0,
}

# Generated downloads cached between reruns; dropped whenever inputs change
ARTIFACT_KEYS = ("range_zip", "all_zip", "print_pdf")


def _state(state: Optional[MutableMapping]) -> MutableMapping:
    if state is not None:
        return state
    import streamlit as st

    return st.session_state


def safe_rerun():
    """Trigger a rerun across Streamlit versions."""
    import streamlit as st

    if hasattr(st, "rerun"):
        st.rerun()
    elif hasattr(st, "experimental_rerun"):
        st.experimental_rerun()


def init_session(state: Optional[MutableMapping] = None) -> MutableMapping:
    state = _state(state)
    for key, default in DEFAULTS.items():
        if key not in state:
            state[key] = list(default) if isinstance(default, list) else default
    return state


def clear_artifacts(state: Optional[MutableMapping] = None) -> None:
    state = _state(state)
    for key in ARTIFACT_KEYS:
        if key in state:
            del state[key]


def reset_merge_session(state: Optional[MutableMapping] = None) -> None:
    """Forget the working template, records and dialogs.

    Linked files stay linked. The upload widgets get fresh keys so the
    files they still hold are not loaded again.
    """
    state = _state(state)
    upload_round = state.get("upload_round", 0) + 1
    for key in list(DEFAULTS) + list(ARTIFACT_KEYS):
        if key in state and key != "linked":
            del state[key]
    init_session(state)
    state["upload_round"] = upload_round


def upload_id(uploaded) -> str:
    """Identify an uploaded file by name and content."""
    digest = hashlib.sha1(uploaded.getvalue()).hexdigest()
    return f"{uploaded.name}:{digest}"


def is_ready(state: Optional[MutableMapping] = None) -> bool:
    state = _state(state)
    return state.get("template") is not None and bool(state.get("records"))


def set_template(
    template: CertificateTemplate,
    selected_id: Optional[str] = None,
    state: Optional[MutableMapping] = None,
) -> None:
    state = _state(state)
    state["template"] = template
    state["selected_template_id"] = selected_id
    state["show_save_dialog"] = False
    clear_artifacts(state)


def clear_template(state: Optional[MutableMapping] = None) -> None:
    state = _state(state)
    state["template"] = None
    state["selected_template_id"] = None
    clear_artifacts(state)


def set_records(record_set: RecordSet, data_name: str = "", state: Optional[MutableMapping] = None) -> None:
    state = _state(state)
    state["records"] = list(record_set.records)
    state["columns"] = list(record_set.columns)
    state["data_name"] = data_name
    state["current_index"] = 0
    state["range_start"] = 1
    state["range_end"] = len(record_set.records)
    clear_artifacts(state)


def template_deleted(template_id: str, state: Optional[MutableMapping] = None) -> None:
    """Clear the working template when its library entry was deleted."""
    state = _state(state)
    if state.get("selected_template_id") == template_id:
        clear_template(state)


def merge_job(settings: MergeSettings, state: Optional[MutableMapping] = None) -> MailMerge:
    state = _state(state)
    job = MailMerge(state.get("template"), state.get("records"), blank_unmatched=settings.blank_unmatched)
    state["current_index"] = job.go_to(state.get("current_index", 0))
    return job


def move(step: int, state: Optional[MutableMapping] = None) -> int:
    state = _state(state)
    last = max(len(state.get("records") or []) - 1, 0)
    state["current_index"] = min(max(state.get("current_index", 0) + step, 0), last)
    return state["current_index"]


def store_archive(key: str, documents: Iterable[Document], state: Optional[MutableMapping] = None) -> int:
    """Zip ``documents`` into ``state[key]``; return how many went in.

    Nothing is stored when no document was generated.
    """
    state = _state(state)
    documents = list(documents)
    if documents:
        state[key] = build_zip(documents)
    else:
        state.pop(key, None)
    return len(documents)


def load_links(registry: LinkRegistry, state: Optional[MutableMapping] = None) -> dict:
    state = _state(state)
    if state.get("linked") is None:
        state["linked"] = registry.links()
    return state["linked"]


def sync_linked_files(settings: MergeSettings, state: Optional[MutableMapping] = None) -> List[str]:
    """Reload linked files that changed on disk; return the reloaded kinds."""
    state = _state(state)
    linked = state.get("linked") or {}
    reloaded = []
    for kind in poll_changes(linked.values()):
        lf = linked[kind]
        data = lf.read()
        if kind == "template":
            template = CertificateTemplate.from_docx(data, template_name_from_filename(lf.name))
            set_template(template, None, state)
        else:
            set_records(load_records(data, lf.name, coerce_dates=settings.coerce_dates), lf.name, state)
        logger.info("Reloaded linked %s from %s", kind, lf.path)
        reloaded.append(kind)
    return reloaded
