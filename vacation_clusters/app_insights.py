"""
Application Insights integration for monitoring and telemetry.
"""
import os
from typing import Optional
from opencensus.ext.azure import metrics_exporter
from opencensus.ext.azure.log_exporter import AzureLogHandler
from opencensus.stats import aggregation as aggregation_module
from opencensus.stats import measure as measure_module
from opencensus.stats import stats as stats_module
from opencensus.stats import view as view_module
from opencensus.tags import tag_map as tag_map_module

from vacation_clusters.error_handling import logger


class AppInsights:
    """Application Insights telemetry client."""

    def __init__(self, connection_string: Optional[str] = None):
        """Initialize Application Insights if a connection string is available."""
        self.connection_string = connection_string or os.getenv("APPLICATIONINSIGHTS_CONNECTION_STRING")
        self.enabled = bool(self.connection_string)

        if self.enabled:
            self._setup_logging()
            self._setup_metrics()
        else:
            logger.debug("Application Insights not configured (missing connection string)")

    def _setup_logging(self):
        """Ship the package log records to Azure."""
        logger.addHandler(AzureLogHandler(connection_string=self.connection_string))
        logger.info("Application Insights logging enabled")

    def _setup_metrics(self):
        self.stats = stats_module.stats
        self.view_manager = self.stats.view_manager

        self.photos_clustered = measure_module.MeasureInt(
            "photos_clustered",
            "Number of photos fed into a clustering run",
            "photos"
        )

        self.clusters_created = measure_module.MeasureInt(
            "clusters_created",
            "Number of clusters produced by a clustering run",
            "clusters"
        )

        self.locations_inferred = measure_module.MeasureInt(
            "locations_inferred",
            "Number of photos whose location was inferred",
            "photos"
        )

        self.geocode_failures = measure_module.MeasureInt(
            "geocode_failures",
            "Number of failed place-name lookups",
            "lookups"
        )

        self.processing_time = measure_module.MeasureFloat(
            "processing_time",
            "Clustering run time",
            "seconds"
        )

        views = [
            view_module.View("photos_clustered_view", "Total photos clustered", [],
                             self.photos_clustered, aggregation_module.SumAggregation()),
            view_module.View("clusters_created_view", "Clusters in the latest run", [],
                             self.clusters_created, aggregation_module.LastValueAggregation()),
            view_module.View("locations_inferred_view", "Total inferred locations", [],
                             self.locations_inferred, aggregation_module.SumAggregation()),
            view_module.View("geocode_failures_view", "Total geocoding failures", [],
                             self.geocode_failures, aggregation_module.SumAggregation()),
            view_module.View("processing_time_view", "Latest clustering run time", [],
                             self.processing_time, aggregation_module.LastValueAggregation()),
        ]
        for view in views:
            self.view_manager.register_view(view)

        exporter = metrics_exporter.new_metrics_exporter(
            connection_string=self.connection_string
        )
        self.view_manager.register_exporter(exporter)

        logger.info("Application Insights metrics enabled")

    def _record_int(self, measure, count: int):
        mmap = self.stats.stats_recorder.new_measurement_map()
        tmap = tag_map_module.TagMap()
        mmap.measure_int_put(measure, count)
        mmap.record(tmap)

    def track_photos_clustered(self, count: int):
        if self.enabled:
            self._record_int(self.photos_clustered, count)
            logger.debug(f"Tracked: {count} photos clustered")

    def track_clusters_created(self, count: int):
        if self.enabled:
            self._record_int(self.clusters_created, count)
            logger.debug(f"Tracked: {count} clusters created")

    def track_locations_inferred(self, count: int):
        if self.enabled:
            self._record_int(self.locations_inferred, count)
            logger.debug(f"Tracked: {count} locations inferred")

    def track_geocode_failures(self, count: int):
        if self.enabled and count:
            self._record_int(self.geocode_failures, count)
            logger.debug(f"Tracked: {count} geocoding failures")

    def track_processing_time(self, seconds: float):
        if self.enabled:
            mmap = self.stats.stats_recorder.new_measurement_map()
            tmap = tag_map_module.TagMap()
            mmap.measure_float_put(self.processing_time, seconds)
            mmap.record(tmap)
            logger.debug(f"Tracked: {seconds:.2f}s processing time")

    def track_event(self, event_name: str, properties: Optional[dict] = None):
        if self.enabled:
            props = properties or {}
            logger.info(f"Event: {event_name}", extra={"custom_dimensions": props})


# Global instance
app_insights = AppInsights()
