import json

import streamlit as st

from mpitrials.dashboard.views import decision_table_view, simulation_view

DECISION_TABLE = "Decision Table"
SIMULATION_RESULTS = "Simulation Results"


def _render_uploaded_sims():
    uploaded_file = st.sidebar.file_uploader(
        "Trial reports (JSON list from run_simulation(return_sims=True) or run_scenarios)",
        type=["json"],
    )
    if uploaded_file is None:
        return
    sims = json.loads(uploaded_file.getvalue().decode("utf-8"))
    st.sidebar.success(f"Read {len(sims)} simulated MPI trials.")
    simulation_view.render(sims)


def main():
    """Renders the MPI dashboard.

    The decision table page builds the Escalate / Stay / De-escalate grid for
    one sample size from the design entered in the sidebar; the results page
    summarises uploaded trial reports.
    """
    st.title("MPI Design Dashboard")

    st.sidebar.header("MPI design")
    page = st.sidebar.selectbox("Page", (DECISION_TABLE, SIMULATION_RESULTS))

    if page == DECISION_TABLE:
        decision_table_view.render()
    else:
        _render_uploaded_sims()


if __name__ == "__main__":
    main()
