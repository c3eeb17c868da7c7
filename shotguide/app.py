from __future__ import annotations

import os
import sys
import time
from datetime import datetime
from typing import List

import streamlit as st
from dotenv import load_dotenv

# Ensure project root is on sys.path when launched with `streamlit run shotguide/app.py`
PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# Load environment
load_dotenv()

from shotguide.config import load_config  # noqa: E402
from shotguide.errors import ConfigurationError, PackagingError  # noqa: E402
from shotguide.gui.pipeline import GenerationPipeline  # noqa: E402
from shotguide.gui.state import Phase, PipelineState  # noqa: E402
from shotguide.services import connectivity_probe  # noqa: E402
from shotguide.services.client import AIServiceClient  # noqa: E402
from shotguide.services.intake import ImageIntake  # noqa: E402
from shotguide.services.packager import download_all, download_one  # noqa: E402
from shotguide.types import DEFAULT_CATEGORY, DEFAULT_STYLE, PRODUCT_CATEGORIES, Shot  # noqa: E402


PREVIEW_THUMB_WIDTH = 110
POLL_INTERVAL_SEC = 1.0
PROMPT_PREVIEW_CHARS = 160


# --------------------------
# Page configuration & Styles
# --------------------------
st.set_page_config(
    page_title="Product Shot Guide",
    layout="wide",
    page_icon="📸",
    initial_sidebar_state="expanded",
)

st.markdown(
    """
<style>
  .main-header { background: #ffffff; border-bottom: 3px solid #002855; padding: 1.25rem 1rem; margin-bottom: 1.25rem; text-align: center; }
  .main-header h1 { margin: 0; font-size: 2.25rem; font-weight: 700; color: #1f2937; }
  .main-header .brand { margin-top: 0.35rem; font-size: 0.85rem; font-weight: 600; letter-spacing: 0.2em; color: #002855; }
  .main-header .brand span { color: #C8102E; }
  .status-indicator { padding: 0.35rem 0.75rem; border-radius: 16px; font-size: 0.85rem; font-weight: 600; display: inline-block; }
  .status-ok { background-color: #d4edda; color: #155724; border: 1px solid #c3e6cb; }
  .status-fail { background-color: #f8d7da; color: #721c24; border: 1px solid #f5c6cb; }
  .log-container { background: #2d3748; color: #e2e8f0; border-radius: 8px; padding: 0.75rem; font-family: 'Monaco','Menlo','Ubuntu Mono',monospace; font-size: 0.75rem; max-height: 320px; overflow-y: auto; }
  .hint { color: #6b7280; font-size: 0.85rem; }
</style>
""",
    unsafe_allow_html=True,
)


# --------------------------
# Session State & Utilities
# --------------------------
def _make_logger(logs: List[str]):
    # Called from the pipeline worker thread too, so it must not touch st.*
    def _log(message: str) -> None:
        ts = datetime.now().strftime("%H:%M:%S")
        logs.append(f"[{ts}] {message}")

    return _log


def _init_session() -> None:
    if "initialized" not in st.session_state:
        st.session_state.initialized = True
        st.session_state.logs = []  # type: List[str]
        log = _make_logger(st.session_state.logs)
        st.session_state.log = log

        try:
            st.session_state.cfg = load_config()
            st.session_state.config_error = None
        except ConfigurationError as e:
            st.session_state.cfg = None
            st.session_state.config_error = str(e)
            log(f"❌ Configuration error: {e}")

        st.session_state.intake = ImageIntake(on_log=log)
        st.session_state.intake_errors = []  # type: List[str]
        st.session_state.uploader_key = 0

        cfg = st.session_state.cfg
        service = AIServiceClient(cfg, on_log=log) if cfg else None
        st.session_state.pipeline = GenerationPipeline(service, on_log=log)

        # Packaging
        st.session_state.archive = None
        st.session_state.archive_key = None
        st.session_state.packaging_error = None


def _header() -> None:
    st.markdown(
        """
        <div class="main-header">
            <h1>Product Shot Guide</h1>
            <div class="brand">AMERICAN <span>★</span> BATH GROUP</div>
        </div>
        """,
        unsafe_allow_html=True,
    )


# --------------------------
# Sidebar: Connection & Form
# --------------------------
def _sidebar(state: PipelineState) -> None:
    st.subheader("🔗 Connection")
    cfg = st.session_state.cfg
    if st.session_state.config_error:
        st.error(st.session_state.config_error)
    elif not cfg.openrouter_api_key:
        st.error("OPENROUTER_API_KEY is missing. Add it to your environment or .env.")
    else:
        ok, msg = connectivity_probe()
        klass = "status-ok" if ok else "status-fail"
        label = "✅ Connected" if ok else "❌ Disconnected"
        st.markdown(f'<div class="status-indicator {klass}">{label}</div>', unsafe_allow_html=True)
        if not ok:
            st.caption(f"Error: {msg}")

    st.divider()

    st.subheader("🛁 Product")
    busy = state.is_busy
    st.selectbox(
        "Product Category",
        options=list(PRODUCT_CATEGORIES),
        index=PRODUCT_CATEGORIES.index(DEFAULT_CATEGORY),
        key="product_category",
        disabled=busy,
    )
    st.text_input(
        "Desired Style",
        value=DEFAULT_STYLE,
        key="style",
        placeholder="e.g., Japandi, Luxury Classic",
        disabled=busy,
    )

    files = st.file_uploader(
        "Product Image(s) (Required)",
        type=["png", "jpg", "jpeg"],
        accept_multiple_files=True,
        key=f"uploader_{st.session_state.uploader_key}",
        help="PNG or JPG. Provide multiple angles.",
        disabled=busy,
    )
    if files:
        rejected = st.session_state.intake.add_files(files)
        st.session_state.intake_errors = [str(e) for e in rejected]
        # A fresh uploader key empties the widget so the same files are not added twice
        st.session_state.uploader_key += 1
        st.rerun()

    for msg in st.session_state.intake_errors:
        st.warning(f"⚠️ {msg}")

    _image_previews(busy)

    st.divider()

    intake: ImageIntake = st.session_state.intake
    generate_disabled = busy or len(intake) == 0 or not (cfg and cfg.openrouter_api_key)
    st.button(
        "✨ Generate Scene",
        type="primary",
        disabled=generate_disabled,
        use_container_width=True,
        help="Plan the scene and render every shot",
        on_click=_generate,
    )

    col_reset, col_clear = st.columns(2)
    with col_reset:
        st.button("♻️ Reset App", use_container_width=True, help="Clear session state and restart the app.", on_click=_reset_app)
    with col_clear:
        st.button("🧹 Clear Images", use_container_width=True, disabled=busy or len(intake) == 0, on_click=_clear_images)


def _image_previews(busy: bool) -> None:
    images = st.session_state.intake.images
    if not images:
        st.caption("No images yet")
        return
    st.caption(f"Image Previews ({len(images)})")
    cols = st.columns(2)
    for idx, image in enumerate(images):
        with cols[idx % 2]:
            st.image(image.to_data_url(), caption=image.name or f"Image {idx + 1}", width=PREVIEW_THUMB_WIDTH)
            st.button(
                "✖ Remove",
                key=f"rm_{st.session_state.uploader_key}_{idx}",
                disabled=busy,
                on_click=_remove_image,
                args=(idx,),
            )


# --------------------------
# Main Content
# --------------------------
def _main_content(state: PipelineState) -> None:
    if state.phase == Phase.IDLE and state.scene is None:
        st.markdown(
            "Define your product and desired style, and let our AI Creative Director generate a complete "
            "set of photorealistic lifestyle and product shots for you."
        )
        st.info("Upload product images in the sidebar, then press **Generate Scene**.")
        return

    if state.is_busy and state.progress:
        st.info(f"🔄 {state.progress}")

    if state.error:
        st.error(f"**Error**\n\n{state.error}")
        st.button("🔁 Start Over", key="start_over_error", on_click=_start_over)

    scene = state.scene
    if scene is None:
        return

    st.subheader(f"🎬 Scene `{scene.scene_id}`")
    with st.expander("Scene Description", expanded=False):
        st.write(scene.master_scene_description)
    with st.expander("Digital Twin Specification", expanded=False):
        st.write(scene.master_product_description)

    _scene_actions(state)

    cols = st.columns(2)
    for idx, shot in enumerate(scene.shots):
        with cols[idx % 2]:
            _render_shot_card(shot, rendering=state.current_shot == idx)


def _scene_actions(state: PipelineState) -> None:
    scene = state.scene
    col_zip, col_reset = st.columns([2, 1])
    with col_zip:
        ready = scene.rendered_count
        archive_key = (state.epoch, ready)
        archive = st.session_state.archive if st.session_state.archive_key == archive_key else None
        if archive is not None:
            st.download_button(
                label=f"📦 Download All ({len(archive.entries)})",
                data=archive.data,
                file_name=archive.file_name,
                mime=archive.mime,
                key="dl_all",
                use_container_width=True,
            )
            if archive.failed:
                st.warning("Left out of the archive: " + ", ".join(archive.failed))
        else:
            st.button(
                f"🗜️ Prepare ZIP ({ready}/{len(scene.shots)})",
                disabled=ready == 0,
                use_container_width=True,
                on_click=_prepare_archive,
                args=(state,),
            )
        if st.session_state.packaging_error:
            st.error(st.session_state.packaging_error)
    with col_reset:
        st.button("🔁 Start Over", key="start_over", disabled=state.is_busy, use_container_width=True, on_click=_start_over)


def _render_shot_card(shot: Shot, rendering: bool) -> None:
    with st.container(border=True):
        if shot.image_data_url:
            st.image(shot.image_data_url, caption=f"Shot {shot.shot_number}", use_container_width=True)
            _render_download(shot)
        elif rendering:
            st.info("🔄 Rendering...")
        else:
            st.caption("Image will appear here")
        st.markdown(f"**{shot.shot_type}**")
        preview = shot.prompt if len(shot.prompt) <= PROMPT_PREVIEW_CHARS else shot.prompt[:PROMPT_PREVIEW_CHARS] + "…"
        st.caption(preview)


def _render_download(shot: Shot) -> None:
    try:
        file = download_one(shot)
    except Exception as e:  # noqa: BLE001
        st.caption(f"⚠️ Download unavailable: {e}")
        return
    if file is None:
        return
    st.download_button(
        label="💾 Download",
        data=file.data,
        file_name=file.file_name,
        mime=file.mime,
        key=f"dl_{shot.shot_number}",
        use_container_width=True,
    )


# --------------------------
# Right Panel: Progress & Logs
# --------------------------
def _right_panel(state: PipelineState) -> None:
    st.subheader("📊 Progress")
    if state.is_busy:
        st.info(f"🔄 {state.progress}")
    elif state.phase == Phase.COMPLETE:
        st.success("✅ Complete")
    elif state.phase == Phase.ERROR:
        st.error("❌ Stopped")
    else:
        st.caption("Idle")

    st.subheader("📋 Activity Log")
    logs: List[str] = st.session_state.get("logs", [])
    if logs:
        st.markdown("<div class=\"log-container\">" + "<br>".join(logs[-40:]) + "</div>", unsafe_allow_html=True)
        if st.button("🗑️ Clear Logs", use_container_width=True):
            logs.clear()
    else:
        st.caption("No activity yet")


# --------------------------
# Actions
# --------------------------
def _generate() -> None:
    intake: ImageIntake = st.session_state.intake
    if len(intake) == 0:
        st.session_state.log("❌ Generate pressed without images")
        return
    form = intake.to_form(st.session_state.product_category, st.session_state.style)
    st.session_state.archive = None
    st.session_state.archive_key = None
    st.session_state.packaging_error = None
    st.session_state.pipeline.submit(form)


def _start_over() -> None:
    st.session_state.pipeline.reset()
    st.session_state.archive = None
    st.session_state.archive_key = None
    st.session_state.packaging_error = None


def _remove_image(index: int) -> None:
    try:
        st.session_state.intake.remove_image(index)
    except IndexError as e:
        st.session_state.log(f"⚠️ {e}")


def _clear_images() -> None:
    st.session_state.intake.clear()
    st.session_state.intake_errors = []


def _prepare_archive(state: PipelineState) -> None:
    try:
        archive = download_all(state.scene, on_log=st.session_state.log)
    except PackagingError as e:
        st.session_state.packaging_error = f"Error creating ZIP file: {e}"
        return
    st.session_state.archive = archive
    st.session_state.archive_key = (state.epoch, state.scene.rendered_count)
    st.session_state.packaging_error = None


def _reset_app() -> None:
    if "pipeline" in st.session_state:
        # Superseded results from a still-running worker are discarded by the epoch guard
        st.session_state.pipeline.reset()
    for key in list(st.session_state.keys()):
        del st.session_state[key]
    _init_session()


# --------------------------
# Entry Point
# --------------------------
def main() -> None:
    _init_session()
    _header()

    state = st.session_state.pipeline.state
    with st.sidebar:
        _sidebar(state)

    col_main, col_right = st.columns([3, 1])
    with col_main:
        _main_content(state)
    with col_right:
        _right_panel(state)

    # The worker thread updates the pipeline; poll until it settles
    if state.is_busy:
        time.sleep(POLL_INTERVAL_SEC)
        st.rerun()


if __name__ == "__main__":
    main()
