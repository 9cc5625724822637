import plotly.express as px
import streamlit as st

from mpitrials.dosefinding.trial import summarise_mpi_sims, tabulate_mpi_sims


def render(sims):
    st.header("MPI Simulation Results")

    try:
        dose_levels = sims[0]["DoseLevels"]
        max_size = sims[0]["MaxSize"]
        summary = summarise_mpi_sims(sims, dose_levels, max_size)
        df = tabulate_mpi_sims(sims, dose_levels, max_size)
    except (IndexError, KeyError, ValueError) as e:
        st.error(f"Could not summarise the simulations: {e}")
        return

    st.subheader("Simulation Summary")
    st.write(
        f"{summary['early_stop_count']} of {summary['num_trials']} trials "
        f"stopped before reaching {max_size} patients."
    )
    st.write(df)

    st.header("Operating Characteristics")
    plot_df = df.reset_index()
    plot_df["Dose"] = plot_df["Dose"].astype(str)

    st.subheader("Dose Selection")
    fig_selection = px.bar(
        plot_df,
        x="Dose",
        y="Selected",
        title="Proportion of Trials Selecting Each Dose",
    )
    st.plotly_chart(fig_selection)

    st.subheader("Patient Allocation")
    fig_allocation = px.bar(
        plot_df[plot_df["Dose"] != "None"],
        x="Dose",
        y="MeanShare",
        title="Mean Share of Patients Treated at Each Dose",
    )
    st.plotly_chart(fig_allocation)
