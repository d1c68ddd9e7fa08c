"""Host status classification.

Pure functions turning the raw connectivity/authentication flags into the
small set of display states the hosts screen renders. ``None`` means the
flag is unknown (no status reported yet).
"""
from __future__ import annotations

from typing import NamedTuple

from hostsync.enums import HostHealth, IndicatorState
from hostsync.schemas import HostStatus


class HostIndicators(NamedTuple):
    health: HostHealth
    active: IndicatorState
    authenticated: IndicatorState


def classify(connected: bool | None, authenticated: bool | None) -> HostHealth:
    """Overall host state, evaluated in this order:

    1. nothing known                  -> UNKNOWN
    2. connected and authenticated    -> PASSED
    3. connected, not authenticated   -> UNKNOWN (auth still pending)
    4. anything else                  -> FAILED
    """
    if connected is None and authenticated is None:
        return HostHealth.UNKNOWN
    if connected and authenticated:
        return HostHealth.PASSED
    if connected:
        return HostHealth.UNKNOWN
    return HostHealth.FAILED


def indicator(flag: bool | None) -> IndicatorState:
    """Icon state for a single flag."""
    if flag is True:
        return IndicatorState.OK
    if flag is False:
        return IndicatorState.WARNING
    return IndicatorState.QUESTION


def classify_status(status: HostStatus | None) -> HostIndicators:
    """Classify a whole status record; a missing record is unknown throughout."""
    if status is None:
        return HostIndicators(HostHealth.UNKNOWN, IndicatorState.QUESTION, IndicatorState.QUESTION)
    return HostIndicators(
        classify(status.connected, status.authenticated),
        indicator(status.connected),
        indicator(status.authenticated),
    )
