"""
Helpers shared by the reporters: turning a finding's structural locations
into concrete source features.
"""

import logging
from typing import Optional

from gha_vulnscan.finding import AnnotatedLocation, Finding
from gha_vulnscan.finding.locate import Feature, LocationError, Locator

logger = logging.getLogger(__name__)

_locator = Locator()


def concretize(finding: Finding) -> list[tuple[AnnotatedLocation, Optional[Feature]]]:
    """
    Resolve every location of a finding.

    A location that can't be resolved (e.g. a duplicated job id) is paired
    with None so the finding is still reported, just without a region.
    """
    resolved = []
    for loc in finding.locations:
        try:
            feature = _locator.concretize(finding.workflow, loc.location)
        except LocationError as e:
            logger.warning(
                "Could not locate %s in %s: %s", loc.location, finding.file_path, e,
            )
            feature = None
        resolved.append((loc, feature))
    return resolved
