"""
Vacation Clusters - Streamlit Web Application

Finds your trips in a pile of photos:
- Infers missing GPS positions from nearby shots
- Groups days away from home into trips
- Keeps trip names across reloads
"""

import streamlit as st
import tempfile
from pathlib import Path
from PIL import Image
import plotly.express as px

from vacation_clusters.database import Database, DATABASE_PATH
from vacation_clusters.models import Coordinate, EditedLocation
from vacation_clusters.cache import snapshot_from_state, state_from_snapshot
from vacation_clusters.geo import with_distance_from_home, KM_PER_MILE, MILES_FROM_HOME
from vacation_clusters.geocoding import NominatimGeocoder
from vacation_clusters.incremental import ClusteringState, LoadMode, recluster, apply_edited_locations
from vacation_clusters.photo_metadata import scan_photo_folder
from vacation_clusters.summary import clusters_to_dataframe, available_years, clusters_for_year
from vacation_clusters.error_handling import VacationClustersError, DatabaseError, handle_error
from vacation_clusters.app_insights import app_insights

st.set_page_config(
    page_title="Vacation Clusters",
    page_icon="✈️",
    layout="wide",
    initial_sidebar_state="expanded"
)

MODE_LABELS = {
    "First batch": LoadMode.INITIAL,
    "Older photos (load more)": LoadMode.LOAD_MORE,
    "Newer photos (refresh)": LoadMode.REFRESH,
}

# Initialize session state
if 'db' not in st.session_state:
    st.session_state.db = Database(DATABASE_PATH)
    st.session_state.clustering = ClusteringState()
    st.session_state.home = None
    try:
        snapshot = st.session_state.db.load_snapshot()
    except DatabaseError as e:
        st.warning(f"Could not read the cache, starting fresh: {e}")
        snapshot = None
    if snapshot is not None:
        st.session_state.clustering = state_from_snapshot(snapshot)
        st.session_state.home = snapshot.home
if 'uri_cache' not in st.session_state:
    # Photo id -> file path, owned by this browser session
    st.session_state.uri_cache = {}
if 'upload_dir' not in st.session_state:
    st.session_state.upload_dir = Path(tempfile.mkdtemp(prefix="vacation_clusters_"))
if 'geocoder' not in st.session_state:
    st.session_state.geocoder = NominatimGeocoder()

def save_uploads(uploaded_files) -> Path:
    """Write one upload batch into its own folder and return it."""
    batch_dir = Path(tempfile.mkdtemp(dir=st.session_state.upload_dir))
    for uploaded_file in uploaded_files:
        with open(batch_dir / uploaded_file.name, 'wb') as f:
            f.write(uploaded_file.getbuffer())
    return batch_dir

def process_upload(uploaded_files, mode: LoadMode, home: Coordinate, min_distance_km: float, geocode: bool):
    batch_dir = save_uploads(uploaded_files)

    progress_bar = st.progress(0)
    status_text = st.empty()

    def on_progress(done, total):
        progress_bar.progress(done / total)
        status_text.text(f"Scanning photos... {done}/{total}")

    try:
        photos = scan_photo_folder(str(batch_dir), uri_cache=st.session_state.uri_cache, on_progress=on_progress)
    except VacationClustersError as e:
        handle_error(e, "scanning uploads", raise_error=False)
        st.error(f"Could not read the uploaded photos: {e}")
        return
    finally:
        progress_bar.empty()
        status_text.empty()

    vacation_photos = with_distance_from_home(photos, home, min_distance_km)
    st.info(f"📷 {len(photos)} photos read, {len(vacation_photos)} taken away from home or without GPS")

    previous = st.session_state.clustering
    with st.spinner("Clustering vacations..."):
        state = recluster(
            previous, vacation_photos, mode,
            reverse_geocode=st.session_state.geocoder if geocode else None,
        )

    if state is previous:
        st.info("No new photos found")
        return

    st.session_state.clustering = state
    try:
        st.session_state.db.save_snapshot(snapshot_from_state(state, home))
    except DatabaseError as e:
        st.warning(f"Trips found but not cached: {e}")
    app_insights.track_event("trips_found", {"mode": LoadMode(mode).value, "clusters": len(state.clusters)})
    st.success(f"✅ Found {len(state.clusters)} clusters!")

def sidebar():
    with st.sidebar:
        st.header("🏠 Home")
        query = st.text_input("Search for your home town")
        if query:
            try:
                matches = st.session_state.geocoder.search(query)
            except VacationClustersError as e:
                st.error(f"Search failed: {e}")
                matches = []
            if matches:
                labels = [name for name, _ in matches]
                choice = st.selectbox("Matches", labels)
                if st.button("Use as home"):
                    st.session_state.home = matches[labels.index(choice)][1]

        home = st.session_state.home
        latitude = st.number_input("Latitude", value=home.latitude if home else 0.0, format="%.5f")
        longitude = st.number_input("Longitude", value=home.longitude if home else 0.0, format="%.5f")
        st.session_state.home = Coordinate(latitude, longitude)

        st.header("⚙️ Configuration")
        min_miles = st.slider("Ignore photos within (miles of home)",
                              min_value=0, max_value=200, value=MILES_FROM_HOME, step=5)
        geocode = st.checkbox("Look up place names", value=True)

        if st.button("🗑️ Clear cache"):
            st.session_state.db.clear_cache()
            st.session_state.clustering = ClusteringState()
            st.session_state.uri_cache = {}
            st.rerun()

    return min_miles * KM_PER_MILE, geocode

def show_trips(clusters):
    years = available_years(clusters)
    year_options = ["All"] + [str(y) for y in years]
    selected = st.selectbox("Year", year_options)
    shown = clusters if selected == "All" else clusters_for_year(clusters, int(selected))

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Trips", sum(1 for c in shown if c.is_vacation and not c.is_unknown_location))
    with col2:
        st.metric("Photos", sum(len(c.photos) for c in shown))
    with col3:
        st.metric("Days away", sum(c.days for c in shown if not c.is_unknown_location))

    df_clusters = clusters_to_dataframe(shown)
    st.dataframe(df_clusters, use_container_width=True)

    map_data = df_clusters[df_clusters['Latitude'].notna()]
    if not map_data.empty:
        st.subheader("📍 Trip Map")
        fig = px.scatter_mapbox(
            map_data,
            lat='Latitude',
            lon='Longitude',
            hover_name='Location',
            hover_data=['Photos', 'Days'],
            size='Photos',
            color='Days',
            color_continuous_scale='Teal',
            zoom=2,
            height=400,
        )
        fig.update_layout(
            mapbox_style="open-street-map",
            margin={"r": 0, "t": 0, "l": 0, "b": 0}
        )
        st.plotly_chart(fig, use_container_width=True)

    located = [c for c in shown if not c.is_unknown_location]
    if located:
        with st.expander("✏️ Rename a trip"):
            labels = [f"{c.id}: {c.location_name or 'Unnamed'}" for c in located]
            choice = st.selectbox("Trip", labels)
            new_name = st.text_input("New name")
            if st.button("Save name") and new_name:
                cluster = located[labels.index(choice)]
                st.session_state.db.save_edited_location(
                    EditedLocation(location_name=new_name, location=cluster.location)
                )
                st.rerun()

def show_gallery(clusters):
    labels = [f"{c.id}: {c.location_name or 'Unnamed'} ({len(c.photos)} photos)" for c in clusters]
    choice = st.selectbox("Select Trip", labels)
    cluster = clusters[labels.index(choice)]

    cols_per_row = 4
    photos = cluster.photos
    for i in range(0, len(photos), cols_per_row):
        cols = st.columns(cols_per_row)
        for j, col in enumerate(cols):
            if i + j >= len(photos):
                continue
            photo = photos[i + j]
            path = st.session_state.uri_cache.get(photo.id)
            with col:
                if path is None:
                    st.caption(f"{Path(photo.id).name} (not in this session)")
                    continue
                try:
                    with Image.open(path) as pil_img:
                        st.image(pil_img, use_container_width=True)
                except OSError as e:
                    st.error(f"Error loading photo: {e}")
                marker = " 📌 inferred" if photo.location_inferred else ""
                st.caption(f"{photo.creation_datetime:%Y-%m-%d %H:%M}{marker}")

def main():
    st.title("✈️ Vacation Clusters")
    st.markdown("*Your trips, found in your photos*")
    st.markdown("---")

    min_distance_km, geocode = sidebar()

    tab1, tab2, tab3 = st.tabs(["📤 Add Photos", "🗺️ Trips", "🖼️ Gallery"])

    with tab1:
        st.header("Upload Your Photos")
        uploaded_files = st.file_uploader(
            "Choose photo files (JPG, PNG)",
            type=['jpg', 'jpeg', 'png'],
            accept_multiple_files=True,
        )
        mode_label = st.radio("These photos are", list(MODE_LABELS), horizontal=True)

        if uploaded_files and st.button("🚀 Find Trips", use_container_width=True):
            process_upload(uploaded_files, MODE_LABELS[mode_label], st.session_state.home,
                           min_distance_km, geocode)

    clusters = apply_edited_locations(
        st.session_state.clustering.clusters,
        st.session_state.db.get_edited_locations(),
    )

    with tab2:
        st.header("Your Trips")
        if not clusters:
            st.info("👈 Upload photos first!")
        else:
            show_trips(clusters)

    with tab3:
        st.header("Trip Gallery")
        if not clusters:
            st.info("👈 Upload photos first!")
        else:
            show_gallery(clusters)

if __name__ == "__main__":
    main()
