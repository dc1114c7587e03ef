#!/usr/bin/env python3
"""
Production Monitor - REST API Module
"""

from .rest_server import RestAPIServer

__all__ = ['RestAPIServer']
