from __future__ import annotations

import streamlit as st

from stockroom.config import get_settings
from stockroom.db import ensure_schema, get_conn
from stockroom.migrations import MigrationError
from stockroom.schema import schema_manager
from stockroom.services.demo_data import load_demo_data

st.title("🧾 Stockroom POS")
st.caption("Local inventory and point-of-sale store. The schema is migrated before anything else reads it.")

settings = get_settings()
try:
    ensure_schema(settings.db_path)
except MigrationError as e:
    st.error(f"Database could not be prepared: {e}")
    st.stop()

conn = get_conn(settings.db_path)
if settings.seed_demo_data:
    load_demo_data(conn)

with st.sidebar:
    st.subheader("Environment")
    st.write(f"**Data directory:** `{settings.data_dir}`")
    st.write(f"**Store:** `{settings.store_locator}`")
    st.write(f"**Schema version:** {schema_manager().current_version(settings.db_path)}")

st.info(
    "Use **🧪 Data Management** to inspect the migration history, load demo data, or move the data directory.",
    icon="ℹ️",
)
