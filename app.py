"""
DocSim - Interactive Streamlit Playground

A lightweight UI layer for comparing two documents. This app wraps the
comparison dispatcher with no additional similarity logic.

Usage:
    streamlit run app.py

Design Principles:
- Thin UI layer: all similarity logic lives in docsim.core
- Explicit actions: user triggers each comparison manually
- No persistence: session resets on reload
"""

import asyncio

import streamlit as st
from markitdown import MarkItDown

from docsim.config import get_settings
from docsim.convert import UPLOAD_EXTENSIONS, ConversionError, file_to_text
from docsim.core.engine import (
    ComparisonError,
    SimilarityService,
    get_default_service,
    list_algorithms,
)
from docsim.logger import configure_logging, get_logger

logger = get_logger(__name__)


# =============================================================================
# Session State Initialization
# =============================================================================

def init_session_state():
    """
    Initialize session state variables.

    Session state tracks:
    - result: Last SimilarityResult (as dict)
    - status_message: Current status for user feedback
    - error_message: Current error message (if any)
    """
    defaults = {
        "result": None,
        "status_message": "",
        "error_message": "",
    }
    for key, value in defaults.items():
        if key not in st.session_state:
            st.session_state[key] = value


def fetch_url_as_markdown(url: str) -> tuple[bool, str]:
    """
    Fetch a URL and convert it to Markdown using markitdown.

    Args:
        url: The webpage URL to convert

    Returns:
        Tuple of (success: bool, content_or_error: str)
    """
    try:
        result = MarkItDown().convert(url)
        content = result.text_content
        if content and content.strip():
            return True, content
        return False, "Conversion returned empty content"
    except Exception as e:
        return False, f"Error: {e}"


@st.cache_resource
def get_service() -> SimilarityService:
    """One service per Streamlit server process (shares the local model)."""
    configure_logging(get_settings().log_level)
    return get_default_service()


# =============================================================================
# Backend Integration
# =============================================================================

def run_comparison(doc1: str, doc2: str, algorithm_id: str) -> bool:
    """
    Run a comparison and store the normalized result in session state.

    Returns True on success, False on error.
    """
    st.session_state.error_message = ""
    try:
        result = asyncio.run(get_service().compare(doc1, doc2, algorithm_id))
    except ComparisonError as e:
        st.session_state.error_message = f"Comparison failed: {e}"
        st.session_state.result = None
        return False
    except Exception as e:
        logger.exception("Unexpected error during comparison")
        st.session_state.error_message = f"Unexpected error: {e}"
        st.session_state.result = None
        return False

    st.session_state.result = result.to_dict()
    st.session_state.status_message = f"Compared with {result.algorithm_name}."
    return True


# =============================================================================
# UI Components
# =============================================================================

def render_document_input(slot: str, label: str) -> str:
    """Render one document text area with an optional file upload and URL fetcher."""
    key = f"{slot}_input"
    uploaded = st.file_uploader(
        f"Upload {label}",
        type=list(UPLOAD_EXTENSIONS),
        key=f"{slot}_file",
    )
    if uploaded is not None:
        # Each upload is converted once; later edits in the text area are kept
        marker = (uploaded.name, uploaded.size)
        if st.session_state.get(f"{slot}_file_marker") != marker:
            st.session_state[f"{slot}_file_marker"] = marker
            try:
                with st.spinner("Converting..."):
                    st.session_state[key] = file_to_text(uploaded.name, uploaded.getvalue())
            except ConversionError as e:
                st.error(f"Failed to read file: {e}")

    with st.expander(f"Fetch {label} from URL", expanded=False):
        url = st.text_input("URL", key=f"{slot}_url", label_visibility="collapsed",
                            placeholder="https://example.com/article")
        if st.button("Fetch", key=f"{slot}_fetch", disabled=not (url and url.strip())):
            with st.spinner("Fetching and converting..."):
                success, content = fetch_url_as_markdown(url.strip())
            if success:
                st.session_state[key] = content
                st.rerun()
            else:
                st.error(f"Failed to fetch: {content}")

    text = st.text_area(label, height=220, key=key)
    if text:
        st.caption(f"{len(text):,} characters, ~{len(text.split()):,} words")
    return text


def render_result():
    """Render the last comparison result."""
    result = st.session_state.result
    if not result:
        return

    st.divider()
    st.subheader("Result")
    col1, col2 = st.columns([1, 2])
    with col1:
        st.metric("Similarity", f"{result['similarity']:.3f}")
    with col2:
        st.markdown(f"**Algorithm:** {result['algorithm']}")
        reasoning = result["details"].get("reasoning")
        if reasoning:
            st.markdown(f"**Assessment:** {reasoning}")

    with st.expander("Details", expanded=False):
        st.json(result["details"])


def main():
    """Main application entry point."""
    st.set_page_config(page_title="DocSim", layout="wide")
    init_session_state()

    st.title("DocSim")
    st.caption("Pairwise document similarity: lexical and semantic algorithms")

    col1, col2 = st.columns(2)
    with col1:
        doc1 = render_document_input("doc1", "Document 1")
    with col2:
        doc2 = render_document_input("doc2", "Document 2")

    algorithms = list_algorithms()
    names = {a["id"]: a["name"] for a in algorithms}
    descriptions = {a["id"]: a["description"] for a in algorithms}
    algorithm_id = st.selectbox(
        "Algorithm",
        options=list(names),
        format_func=lambda x: names[x],
    )
    st.caption(descriptions[algorithm_id])

    both_present = bool(doc1 and doc1.strip() and doc2 and doc2.strip())
    if st.button("Compare", type="primary", disabled=not both_present):
        with st.spinner("Comparing..."):
            run_comparison(doc1, doc2, algorithm_id)

    if st.session_state.error_message:
        st.error(st.session_state.error_message)
    elif st.session_state.status_message and st.session_state.result:
        st.success(st.session_state.status_message)

    render_result()


if __name__ == "__main__":
    main()
