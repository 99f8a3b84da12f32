"""Application services for the lure catalog."""

from lure_catalog.services.coverage import CoverageReport, CoverageService
from lure_catalog.services.series import SeriesService, group_into_series

__all__ = [
    "CoverageReport",
    "CoverageService",
    "SeriesService",
    "group_into_series",
]
