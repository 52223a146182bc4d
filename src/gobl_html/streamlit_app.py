import os
import requests
import streamlit as st

API_BASE = os.getenv("GOBL_HTML_API_BASE", os.getenv("API_BASE", "http://localhost:3000")).rstrip("/")
TIMEOUT = float(os.getenv("GOBL_HTML_UI_TIMEOUT", "120"))


def _reset_state():
    for key in ("pdf", "pdf_name", "error"):
        st.session_state.pop(key, None)
    # a fresh key gives an empty uploader
    st.session_state["upload_key"] = st.session_state.get("upload_key", 0) + 1


def _error_message(resp: requests.Response) -> str:
    try:
        detail = resp.json().get("detail", {})
        if isinstance(detail, dict):
            return f"{resp.status_code} {detail.get('code', '')}: {detail.get('message', '')}"
        return f"{resp.status_code} {detail}"
    except ValueError:
        return f"{resp.status_code} {resp.text}"


def _generate_pdf(data: bytes) -> bytes | None:
    try:
        resp = requests.post(
            f"{API_BASE}/",
            data=data,
            headers={"Content-Type": "application/json"},
            timeout=TIMEOUT,
        )
    except requests.RequestException as e:
        st.session_state["error"] = f"Failed to connect to API: {e}"
        return None
    if resp.status_code != 200:
        st.session_state["error"] = f"Generation failed: {_error_message(resp)}"
        return None
    return resp.content


def main() -> None:
    st.set_page_config(page_title="GOBL HTML Service", page_icon="🧾", layout="centered")
    st.title("🧾 GOBL to PDF")
    st.caption(f"API base: {API_BASE}")

    if st.button("Restart", type="secondary"):
        _reset_state()
        st.rerun()

    if "upload_key" not in st.session_state:
        st.session_state["upload_key"] = 0
    uploaded = st.file_uploader(
        "Upload a GOBL envelope (JSON)",
        type=["json"],
        key=f"uploader-{st.session_state['upload_key']}",
    )

    if uploaded and "pdf" not in st.session_state and st.button("Generate PDF", type="primary"):
        st.session_state.pop("error", None)
        with st.spinner("Rendering..."):
            pdf = _generate_pdf(uploaded.getvalue())
        if pdf is not None:
            st.session_state["pdf"] = pdf
            base, _, _ = uploaded.name.rpartition(".")
            st.session_state["pdf_name"] = f"{base or uploaded.name}.pdf"
            st.toast("PDF ready", icon="✅")

    if "pdf" in st.session_state:
        st.success("Conversion complete!")
        st.download_button(
            label="Download PDF",
            data=st.session_state["pdf"],
            file_name=st.session_state.get("pdf_name", "document.pdf"),
            mime="application/pdf",
        )

    if err := st.session_state.get("error"):
        st.error(err)


if __name__ == "__main__":
    main()
