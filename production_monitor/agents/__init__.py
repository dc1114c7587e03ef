#!/usr/bin/env python3
"""
Production Monitor - Agents Module
"""

from .probe_scheduler import HttpProber, ProbeScheduler
from .remediation_agent import RemediationAttempt, RemediationDispatcher

__all__ = [
    'HttpProber',
    'ProbeScheduler',
    'RemediationAttempt',
    'RemediationDispatcher'
]
