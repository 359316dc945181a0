from __future__ import annotations

import streamlit as st

st.set_page_config(page_title="Stockroom POS", page_icon="🧾", layout="wide")

pages = [
    st.Page("home.py", title="Home", icon="🏠"),
    st.Page("pages/1_🧪_Data_Management.py", title="Data Management", icon="🧪"),
]

st.navigation(pages).run()
