import streamlit as st
import sys, os
import logging

# ---------------------------
# Ensure project root is on sys.path
# ---------------------------
ROOT_DIR = os.path.dirname(__file__)
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Import wrappers
from wrappers.address_wrapper import run_single_verification, run_address_agent, merged_preview
from wrappers.delivery_wrapper import run_delivery

from agents.address_agent.io_utils import OUTPUT_FILENAME, XLSX_MIME
from agents.address_agent.normalizer import generate_email_template
from agents.delivery.mailer import DEFAULT_TEMPLATE, send_address_verification_email


# ---------------------------
# Logging setup
# ---------------------------
logger = logging.getLogger("app")
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s - %(levelname)s - %(message)s"))
    logger.addHandler(handler)
logger.setLevel(logging.INFO)

# ---------------------------
# Streamlit UI config
# ---------------------------
st.set_page_config(page_title="Address Verification", layout="wide")
st.title("📮 Address Verification")
st.markdown("Verify a single address, batch-verify a ShipStation export, or email customers to confirm their address.")

# ---------------------------
# Session persistence
# ---------------------------
for key, default in {
    "single_input": "",
    "single_result": None,
    "batch_rows": None,
    "batch_blob": None,
    "batch_status": [],
    "email_to": "",
    "email_original": "",
    "email_verified": "",
    "email_template": DEFAULT_TEMPLATE,
}.items():
    if key not in st.session_state:
        st.session_state[key] = default


def _reset_single():
    st.session_state["single_input"] = ""
    st.session_state["single_result"] = None


def _reset_email():
    st.session_state["email_to"] = ""
    st.session_state["email_original"] = ""
    st.session_state["email_verified"] = ""
    st.session_state["email_template"] = DEFAULT_TEMPLATE


tab_single, tab_csv, tab_email = st.tabs(["🔍 Single Address", "📄 CSV Batch Process", "✉️ Email Composer"])

# ---------------------------
# Single address
# ---------------------------
with tab_single:
    st.text_area("Input Address", key="single_input", placeholder="Enter address to verify...")
    col1, col2 = st.columns(2)
    with col1:
        verify_clicked = st.button("Verify Address", disabled=not st.session_state["single_input"].strip())
    with col2:
        st.button("Reset", key="single_reset", on_click=_reset_single)

    if verify_clicked:
        with st.spinner("Verifying..."):
            try:
                st.session_state["single_result"] = run_single_verification(st.session_state["single_input"])
            except Exception as e:
                logger.exception("Single verification failed: %s", e)
                st.session_state["single_result"] = None
                st.error("Failed to verify address. Please try again.")

    result = st.session_state["single_result"]
    if result is not None:
        st.text_area("Verified Address", value=result.fullAddress, disabled=True)
        st.json(result.to_dict())

# ---------------------------
# CSV batch
# ---------------------------
with tab_csv:
    uploaded_file = st.file_uploader("Drop your ShipStation CSV file here, or click to select", type=["csv", "xlsx"])
    st.caption("The file will be processed and saved as Excel format")

    col1, col2 = st.columns(2)
    with col1:
        send_relay = st.checkbox("Send workbook to relay channel", value=True)
    with col2:
        send_emails = st.checkbox("Email customers to confirm their address", value=False)

    if uploaded_file and st.button("▶️ Process Addresses"):
        status_lines = ["Processing addresses..."]
        status = st.empty()
        status.info("\n\n".join(status_lines))
        progress_bar = st.progress(0)

        def _on_progress(done, total):
            progress_bar.progress(min(done / total, 1.0) if total else 1.0)

        try:
            merged, blob = run_address_agent(uploaded_file.getvalue(), uploaded_file.name, on_progress=_on_progress)
            st.session_state["batch_rows"] = merged
            st.session_state["batch_blob"] = blob

            status_lines.append(f"Verified {len(merged)} rows. Workbook ready for download.")
            status.info("\n\n".join(status_lines))

            status_lines.extend(run_delivery(blob, OUTPUT_FILENAME, merged,
                                             send_relay=send_relay, send_emails=send_emails))
            status_lines.append("Processing complete!")
        except Exception as e:
            logger.exception("Batch failed: %s", e)
            st.session_state["batch_rows"] = None
            st.session_state["batch_blob"] = None
            st.error("Failed to process addresses. Please try again.")
        st.session_state["batch_status"] = status_lines
        status.empty()

    if st.session_state["batch_status"]:
        st.info("\n\n".join(st.session_state["batch_status"]))

    if st.session_state["batch_blob"] is not None:
        st.dataframe(merged_preview(st.session_state["batch_rows"]))
        st.download_button(
            label="📥 Download verified_addresses.xlsx",
            data=st.session_state["batch_blob"],
            file_name=OUTPUT_FILENAME,
            mime=XLSX_MIME,
        )

# ---------------------------
# Email composer
# ---------------------------
with tab_email:
    batch_mode = st.toggle("Batch Mode", value=False,
                           help="Batch mode uses the registered SendGrid template; tags are filled per recipient.")

    if not batch_mode:
        st.text_input("Recipient Email", key="email_to", placeholder="recipient@example.com")
        st.text_area("Original Address", key="email_original", placeholder="Enter original address...")
        st.text_area("Verified Address", key="email_verified", placeholder="Enter verified address...")
    else:
        st.text_input("Original Address", value="{{original_address}}", disabled=True)
        st.text_input("Verified Address", value="{{verified_address}}", disabled=True)
        st.caption("Batch emails are sent from the CSV Batch Process tab.")

    if not batch_mode and st.button(
        "✨ Generate Template",
        disabled=not (st.session_state["email_original"] and st.session_state["email_verified"]),
    ):
        with st.spinner("Generating template..."):
            try:
                st.session_state["email_template"] = generate_email_template(
                    st.session_state["email_original"], st.session_state["email_verified"]
                )
            except Exception as e:
                logger.error("Template generation failed: %s", e)
                st.error("Failed to generate email template. Please try again.")

    st.text_area("Email Template", key="email_template", height=300)

    col1, col2 = st.columns(2)
    with col1:
        send_clicked = st.button(
            "📨 Send Email",
            disabled=batch_mode or not st.session_state["email_to"] or not st.session_state["email_template"],
        )
    with col2:
        st.button("Reset", key="email_reset", on_click=_reset_email)

    if send_clicked:
        with st.spinner("Sending..."):
            try:
                send_address_verification_email(
                    st.session_state["email_to"],
                    st.session_state["email_original"],
                    st.session_state["email_verified"],
                    st.session_state["email_template"],
                )
                st.success(f"Email sent to {st.session_state['email_to']}")
            except Exception as e:
                logger.error("Email send failed: %s", e)
                st.error("Failed to send email. Please try again.")
