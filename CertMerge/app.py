import logging
import sys
from pathlib import Path

import streamlit as st
import streamlit.components.v1 as components

# Ensure repository root is on Python path
sys.path.append(str(Path(__file__).resolve().parents[1]))

from cert_merge.config import MergeSettings, configure_logging
from cert_merge.docx_fill import DOCX_MIME, TemplateError
from cert_merge.linked_files import LinkRegistry
from cert_merge.merge import RANGE_ERROR, CertificateTemplate, InvalidRangeError, template_name_from_filename
from cert_merge.printing import print_all, print_current, print_document, print_script, render_print_pdf
from cert_merge.records import DataFileError, load_records
from cert_merge.template_store import TemplateStore, TemplateStoreError
from utils.navigation import render_sidebar
from utils.session import (
    clear_artifacts,
    init_session,
    is_ready,
    load_links,
    merge_job,
    move,
    safe_rerun,
    set_records,
    set_template,
    store_archive,
    sync_linked_files,
    upload_id,
)

AUTO_RELOAD_SECONDS = 3
ZIP_MIME = "application/zip"
GENERATE_ERROR = "Error generating certificate. Please check your template and data."

settings = MergeSettings.from_env()
configure_logging(settings.log_level, settings.log_file)
logger = logging.getLogger(__name__)

st.set_page_config(page_title="CertMerge", page_icon="📜", layout="wide")
init_session()

store = TemplateStore(settings.store_path)
registry = LinkRegistry(settings.links_path)
load_links(registry)

try:
    for kind in sync_linked_files(settings):
        st.toast(f"Reloaded linked {kind} file")
except (TemplateError, DataFileError, OSError) as e:
    logger.exception("Error reloading linked files")
    st.error(f"Error reloading linked file: {e}")

render_sidebar(store, registry, settings)

st.title("📜 Certificate Generator")
st.caption("Upload a Word template with {placeholders} and a spreadsheet with matching column names.")


def _report_export(job, made):
    if job.failures:
        st.warning(f"{len(job.failures)} certificate(s) could not be generated; see the log.")
    if not made:
        st.error(GENERATE_ERROR)


col_docx, col_data = st.columns(2)
with col_docx:
    docx_file = st.file_uploader("Word template (.docx)", type=["docx"], key=f"docx_upload_{st.session_state.upload_round}")
    if docx_file is not None and upload_id(docx_file) != st.session_state.docx_upload_id:
        st.session_state.docx_upload_id = upload_id(docx_file)
        try:
            name = template_name_from_filename(docx_file.name)
            set_template(CertificateTemplate.from_docx(docx_file.getvalue(), name))
            st.session_state.template_name = name
            st.session_state.show_save_dialog = True
        except TemplateError as e:
            logger.exception("Error reading DOCX")
            st.error(str(e))
    if st.session_state.template is not None:
        st.success(f"✓ Template: {st.session_state.template.name or 'uploaded'}")

with col_data:
    data_file = st.file_uploader("Spreadsheet (.xlsx, .xls, .csv)", type=["xlsx", "xls", "csv"], key=f"data_upload_{st.session_state.upload_round}")
    if data_file is not None and upload_id(data_file) != st.session_state.data_upload_id:
        st.session_state.data_upload_id = upload_id(data_file)
        try:
            set_records(load_records(data_file.getvalue(), data_file.name, settings.coerce_dates), data_file.name)
        except DataFileError as e:
            logger.exception("Error reading spreadsheet")
            st.error(str(e))
    if st.session_state.records:
        st.success(f"✓ {len(st.session_state.records)} records")

if st.session_state.show_save_dialog and st.session_state.template is not None:
    with st.container(border=True):
        st.subheader("Save Template")
        st.text_input("Template name", key="template_name", placeholder="Enter template name")
        c1, c2 = st.columns(2)
        if c1.button("Save", key="save_template"):
            template = st.session_state.template
            try:
                saved = store.save(st.session_state.template_name, template.binary, template.html, template.placeholders)
                template.name = saved.name
                st.session_state.selected_template_id = saved.id
                st.session_state.show_save_dialog = False
                safe_rerun()
            except ValueError as e:
                st.warning(str(e))
            except TemplateStoreError as e:
                logger.exception("Error saving template")
                st.error(str(e))
        if c2.button("Cancel", key="cancel_save"):
            st.session_state.show_save_dialog = False
            safe_rerun()

if st.session_state.linked and hasattr(st, "fragment"):

    @st.fragment(run_every=AUTO_RELOAD_SECONDS)
    def _watch_linked_files():
        if any(lf.has_changed() for lf in st.session_state.linked.values()):
            st.rerun()

    _watch_linked_files()

if not is_ready():
    st.markdown(
        """
### How it works
1. Upload a Word template with placeholders like `{name}`, `{{degree}}` or `[date]`, or pick a saved one
2. Upload your spreadsheet with matching column names (name, degree, etc.)
3. Preview the merged certificates and navigate through records
4. Download or print certificates individually, by range, or all at once
"""
    )
    st.stop()

job = merge_job(settings)
total = len(job)

st.subheader("👁 Preview")
nav_prev, nav_count, nav_next = st.columns([1, 2, 1])
if nav_prev.button("← Previous", disabled=job.current_index == 0):
    move(-1)
    safe_rerun()
nav_count.markdown(f"<div style='text-align:center'>{job.current_index + 1} / {total}</div>", unsafe_allow_html=True)
if nav_next.button("Next →", disabled=job.current_index >= total - 1):
    move(1)
    safe_rerun()

try:
    preview = job.preview_html()
    components.html(print_document([preview]), height=600, scrolling=True)
except TemplateError as e:
    logger.exception("Error rendering preview")
    st.error(str(e))
    preview = None

st.subheader("⬇️ Download")
d1, d2, d3 = st.columns(3)
with d1:
    try:
        st.download_button(
            "Download Current",
            data=job.generate(),
            file_name=f"{job.output_name(job.current_index)}.docx",
            mime=DOCX_MIME,
        )
    except Exception:
        logger.exception("Error generating DOCX")
        st.error(GENERATE_ERROR)

with d2:
    r1, r2 = st.columns(2)
    start = r1.number_input("From", min_value=1, max_value=total, key="range_start", step=1)
    end = r2.number_input("To", min_value=1, max_value=total, key="range_end", step=1)
    st.caption(f"Total records: {total} | Selected: {max(0, int(end) - int(start) + 1)}")
    if st.button("Prepare Range"):
        try:
            _report_export(job, store_archive("range_zip", job.export_range(int(start), int(end))))
        except InvalidRangeError:
            st.error(RANGE_ERROR)
    if st.session_state.get("range_zip"):
        st.download_button(
            "Download Range",
            data=st.session_state.range_zip,
            file_name=f"certificates_{int(start)}-{int(end)}.zip",
            mime=ZIP_MIME,
        )

with d3:
    if st.button(f"Prepare All ({total})"):
        _report_export(job, store_archive("all_zip", job.export_all()))
    if st.session_state.get("all_zip"):
        st.download_button(f"Download All ({total})", data=st.session_state.all_zip, file_name="certificates.zip", mime=ZIP_MIME)

st.subheader("🖨️ Print")
p1, p2, p3 = st.columns(3)
template = st.session_state.template
if p1.button("Print Current") and preview is not None:
    components.html(print_script(print_current(template.html, job.current_record, settings.blank_unmatched)), height=0)
if p2.button(f"Print All ({total})"):
    components.html(print_script(print_all(template.html, job.records, settings.blank_unmatched)), height=0)
with p3:
    if st.button("Prepare Print PDF"):
        try:
            st.session_state.print_pdf = render_print_pdf(job.merged_paragraphs(i) for i in range(total))
        except TemplateError as e:
            logger.exception("Error rendering print PDF")
            st.error(str(e))
    if st.session_state.get("print_pdf"):
        st.download_button("Download Print PDF", data=st.session_state.print_pdf, file_name="certificates.pdf", mime="application/pdf")

if st.button("Clear generated files"):
    clear_artifacts()
    safe_rerun()
