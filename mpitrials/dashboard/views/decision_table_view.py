import streamlit as st

from mpitrials.dosefinding.intervals import make_intervals
from mpitrials.dosefinding.mpi import make_decision_table
from mpitrials.errors import ConfigurationError


def render():
    """Renders the decision table for design parameters set in the sidebar."""
    st.header("MPI Decision Table")

    st.sidebar.header("Design Parameters")
    N = st.sidebar.number_input("Patients at the dose (N)", min_value=1, value=3, step=1)
    PF = st.sidebar.number_input("Target futility probability (PF)", 0.0, 1.0, 0.2)
    PF_tolerance = st.sidebar.number_input("Futility tolerance", 0.0, 0.5, 0.05)
    eta = st.sidebar.number_input("Futility threshold (eta)", 0.0, 1.0, 0.8)
    PT = st.sidebar.number_input("Target toxicity probability (PT)", 0.0, 1.0, 0.2)
    PT_tolerance = st.sidebar.number_input("Toxicity tolerance", 0.0, 0.5, 0.05)
    zeta = st.sidebar.number_input("Toxicity threshold (zeta)", 0.0, 1.0, 0.8)
    quick = st.sidebar.checkbox("Quick integration", value=True)

    if st.sidebar.button("Make Decision Table"):
        try:
            with st.spinner("Making decision table..."):
                table = make_decision_table(
                    int(N),
                    PF,
                    PF_tolerance,
                    eta,
                    PT,
                    PT_tolerance,
                    zeta,
                    use_quick_integration=quick,
                )
                pf_partition, pt_partition = make_intervals(
                    PF, PF_tolerance, eta, PT, PT_tolerance, zeta
                )
        except ConfigurationError as e:
            st.error(f"Invalid design: {e}")
            return

        st.subheader(f"Decisions with N={table.sample_size}")
        st.write("Rows are futility counts and columns are toxicity counts.")
        st.write(table.to_dataframe())

        st.subheader("Futility Intervals")
        st.write(pf_partition.to_dataframe())
        st.subheader("Toxicity Intervals")
        st.write(pt_partition.to_dataframe())
