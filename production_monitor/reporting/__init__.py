#!/usr/bin/env python3
"""
Production Monitor - Reporting Module
"""

from .status_reporter import StatusReporter

__all__ = ['StatusReporter']
