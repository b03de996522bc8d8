"""
Metric Classifier

Analytics sources label their series with free text ("Impressions",
"Page Views", "Link Clicks", ...). The dashboard only cares about two
families, so labels are matched against two patterns. Impressions is checked
first: a label matching both is counted as impressions only.
"""

import re
from enum import Enum

IMPRESSIONS_RE = re.compile(r"impression|views|page.views|reach", re.IGNORECASE)
TRAFFICS_RE = re.compile(r"click|engagement|traffic", re.IGNORECASE)


class MetricKind(str, Enum):
    IMPRESSIONS = "impressions"
    TRAFFIC = "traffic"
    UNCLASSIFIED = "unclassified"


def classify_metric(label: str) -> MetricKind:
    if IMPRESSIONS_RE.search(label or ""):
        return MetricKind.IMPRESSIONS
    if TRAFFICS_RE.search(label or ""):
        return MetricKind.TRAFFIC
    return MetricKind.UNCLASSIFIED
