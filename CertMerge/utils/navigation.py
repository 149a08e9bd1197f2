import logging

import streamlit as st

from cert_merge.config import MergeSettings
from cert_merge.linked_files import LinkRegistry
from cert_merge.template_store import TemplateStore, TemplateStoreError

from .session import (
    clear_artifacts,
    is_ready,
    reset_merge_session,
    safe_rerun,
    set_template,
    sync_linked_files,
    template_deleted,
)

logger = logging.getLogger(__name__)


def render_template_library(store: TemplateStore):
    """Saved templates: click to load, delete after confirmation."""
    st.subheader("📚 Saved Templates")
    try:
        templates = store.list()
    except TemplateStoreError as e:
        logger.error("%s", e)
        st.error("Could not read the saved template library.")
        return

    if not templates:
        st.caption("No saved templates yet. Upload a DOCX to get started!")
        return

    selected = st.session_state.selected_template_id
    for template in templates:
        marker = "✅ " if template.id == selected else ""
        col_load, col_del = st.columns([5, 1])
        with col_load:
            if st.button(f"{marker}{template.name}", key=f"load_{template.id}", use_container_width=True):
                try:
                    set_template(store.load(template.id), template.id)
                    logger.info("Loaded saved template %s", template.id)
                    safe_rerun()
                except (KeyError, TemplateStoreError) as e:
                    logger.exception("Error loading template %s", template.id)
                    st.error(f"Error loading template: {e}")
            st.caption(f"{len(template.placeholders)} fields • {template.uploadDate}")
        with col_del:
            if st.button("🗑️", key=f"del_{template.id}", help="Delete template"):
                st.session_state.pending_delete = template.id

        if st.session_state.pending_delete == template.id:
            st.warning("Are you sure you want to delete this template?")
            c1, c2 = st.columns(2)
            if c1.button("Delete", key=f"confirm_del_{template.id}"):
                try:
                    store.delete(template.id)
                    template_deleted(template.id)
                except TemplateStoreError as e:
                    logger.exception("Error deleting template %s", template.id)
                    st.error(str(e))
                st.session_state.pending_delete = None
                safe_rerun()
            if c2.button("Cancel", key=f"cancel_del_{template.id}"):
                st.session_state.pending_delete = None
                safe_rerun()


def render_status():
    st.subheader("Status")
    template = st.session_state.template
    records = st.session_state.records
    st.write(("✅" if is_ready() else "⏳") + (" Ready to generate" if is_ready() else " Waiting for files"))
    st.write(("✅" if template is not None else "⬜") + " Template")
    st.write(("✅" if records else "⬜") + (f" Data ({len(records)} records)" if records else " Data"))

    if template is not None and template.placeholders:
        st.markdown("**Placeholders Found**")
        st.code("\n".join(template.placeholders), language=None)
    if st.session_state.columns:
        st.markdown("**Spreadsheet Columns**")
        st.code("\n".join(st.session_state.columns), language=None)
    if is_ready():
        st.info("Placeholders are matched with spreadsheet columns, ignoring case. Date serials are auto-converted!")

    if st.session_state.template is not None or records:
        if st.button("🔄 Start over", key="start_over", help="Clear the template, data and generated files"):
            reset_merge_session()
            safe_rerun()


def render_linked_files(registry: LinkRegistry, settings: MergeSettings):
    """Link template/data files on disk; they reload when the file changes."""
    with st.expander("🔗 Linked Files"):
        linked = st.session_state.linked
        for kind, label in (("template", "Template (.docx)"), ("data", "Spreadsheet")):
            current = linked.get(kind)
            if current is not None:
                state = "" if current.exists else " (missing)"
                st.caption(f"{label}: {current.path}{state}")
                if st.button(f"Unlink {kind}", key=f"unlink_{kind}"):
                    registry.unlink(kind)
                    linked.pop(kind, None)
                    safe_rerun()
            else:
                path = st.text_input(f"{label} path", key=f"link_path_{kind}")
                if st.button(f"Link {kind}", key=f"link_{kind}") and path.strip():
                    try:
                        linked[kind] = registry.link(kind, path.strip())
                        clear_artifacts()
                        sync_linked_files(settings)
                        safe_rerun()
                    except (OSError, ValueError) as e:
                        logger.exception("Error linking %s file", kind)
                        st.error(f"Could not link file: {e}")


def render_sidebar(store: TemplateStore, registry: LinkRegistry, settings: MergeSettings):
    """Render the sidebar: template library, status and linked files."""
    with st.sidebar:
        st.title("📜 CertMerge")
        render_template_library(store)
        st.markdown("---")
        render_status()
        st.markdown("---")
        render_linked_files(registry, settings)
