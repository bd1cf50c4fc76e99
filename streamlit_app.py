"""Streamlit web front end for the transcript API."""

import os

import httpx
import streamlit as st

from ytscribe.config import Config

API_BASE = os.getenv("API_BASE", Config.API_BASE).rstrip("/")
REQUEST_TIMEOUT = Config.AUDIO_TIMEOUT + Config.TRANSCRIBE_TIMEOUT


# Page configuration
st.set_page_config(
    page_title="YouTube Transcript",
    page_icon="🎥",
    layout="centered",
)

# Initialize session state
if 'transcript_text' not in st.session_state:
    st.session_state.transcript_text = ""
if 'transcript_source' not in st.session_state:
    st.session_state.transcript_source = None
if 'transcript_filename' not in st.session_state:
    st.session_state.transcript_filename = None


def fetch_transcript(url: str, output_format: str, lang: str) -> httpx.Response:
    """Call GET /transcript on the API."""
    params = {"url": url, "format": output_format}
    if lang:
        params["lang"] = lang
    return httpx.get(f"{API_BASE}/transcript", params=params, timeout=REQUEST_TIMEOUT)


def _filename_from(response: httpx.Response, fallback: str) -> str:
    disposition = response.headers.get("content-disposition", "")
    if 'filename="' in disposition:
        return disposition.split('filename="', 1)[1].rstrip('"')
    return fallback


st.title("🎥 YouTube Transcript")

with st.form("transcript_form"):
    url = st.text_input("YouTube URL", placeholder="Paste YouTube URL…")
    col1, col2 = st.columns(2)
    with col1:
        output_format = st.selectbox("Format", ["txt", "srt"], format_func=str.upper)
    with col2:
        lang = st.text_input("Language", value=Config.DEFAULT_LANG, placeholder="auto")
    submitted = st.form_submit_button("Get Transcript")

if submitted:
    st.session_state.transcript_text = ""
    st.session_state.transcript_source = None
    if not url.strip():
        st.error("Please paste a YouTube link.")
    else:
        with st.spinner("Working… captions first, audio transcription if needed"):
            try:
                response = fetch_transcript(url.strip(), output_format, lang.strip())
            except httpx.HTTPError as e:
                st.error(f"❌ Could not reach the API at {API_BASE}: {e}")
                response = None

        if response is not None:
            if response.is_success:
                st.session_state.transcript_text = response.text
                st.session_state.transcript_source = response.headers.get("x-transcript-source")
                st.session_state.transcript_filename = _filename_from(response, f"transcript.{output_format}")
            else:
                try:
                    payload = response.json()
                except ValueError:
                    payload = {}
                st.error(f"❌ {payload.get('error') or f'HTTP {response.status_code}'}")
                if payload.get('hint'):
                    st.info(f"ℹ️ {payload['hint']}")
                for attempt in payload.get('attempts') or []:
                    st.caption(f"• {attempt['strategy']}: {attempt.get('error') or 'ok'}")

if st.session_state.transcript_text:
    st.success(f"✓ Transcript from {st.session_state.transcript_source}")
    st.download_button(
        "Download",
        data=st.session_state.transcript_text,
        file_name=st.session_state.transcript_filename,
        mime="text/plain",
    )
    st.code(st.session_state.transcript_text, language=None)
else:
    st.caption(f"API: {API_BASE}/transcript")
