#!/usr/bin/env python3
"""
Production Monitor - Threshold Evaluator
Derives latency and availability breaches from registry state.

Pure functions of their inputs; no state is kept between calls.
"""

from typing import List

from .models import (
    AlertSeverity, Breach, BreachCategory, MonitoredTarget, TargetHealth,
    TargetStatus, ThresholdPair
)


def evaluate_target(target: MonitoredTarget, health: TargetHealth) -> List[Breach]:
    """
    Evaluate one target's current result against its thresholds.

    A healthy target yields at most one latency breach (the most severe one
    exceeded). An unhealthy critical target yields an availability breach.
    Targets not probed yet yield nothing.

    Args:
        target: Target configuration
        health: Current registry entry for the target

    Returns:
        List of breaches, possibly empty
    """
    breaches: List[Breach] = []

    if health.status == TargetStatus.HEALTHY:
        response_time = health.response_time_ms
        if response_time is None:
            return breaches

        thresholds = target.response_time
        if response_time > thresholds.critical:
            breaches.append(Breach(
                category=BreachCategory.LATENCY_CRITICAL,
                severity=AlertSeverity.CRITICAL,
                message=f"{target.name} response time critical: {response_time:.0f}ms",
                target_name=target.name,
                value=response_time,
            ))
        elif response_time > thresholds.warning:
            breaches.append(Breach(
                category=BreachCategory.LATENCY_WARNING,
                severity=AlertSeverity.WARNING,
                message=f"{target.name} response time high: {response_time:.0f}ms",
                target_name=target.name,
                value=response_time,
            ))

    elif health.status == TargetStatus.UNHEALTHY and target.critical:
        breaches.append(Breach(
            category=BreachCategory.AVAILABILITY,
            severity=AlertSeverity.CRITICAL,
            message=f"{target.name} is unhealthy: {health.last_error or 'unknown error'}",
            target_name=target.name,
            value=float(health.consecutive_failures),
        ))

    return breaches


def evaluate_system(availability_percent: float, thresholds: ThresholdPair) -> List[Breach]:
    """
    Evaluate overall availability. Availability thresholds are lower bounds:
    a breach fires when the figure drops below them.
    """
    if availability_percent < thresholds.critical:
        return [Breach(
            category=BreachCategory.SYSTEM_AVAILABILITY_CRITICAL,
            severity=AlertSeverity.CRITICAL,
            message=f"System availability critical: {availability_percent:.2f}%",
            value=availability_percent,
        )]
    if availability_percent < thresholds.warning:
        return [Breach(
            category=BreachCategory.SYSTEM_AVAILABILITY_WARNING,
            severity=AlertSeverity.WARNING,
            message=f"System availability low: {availability_percent:.2f}%",
            value=availability_percent,
        )]
    return []


class ThresholdEvaluator:
    """Binds the global availability thresholds to the evaluation functions."""

    def __init__(self, availability: ThresholdPair):
        self.availability = availability

    def evaluate_target(self, target: MonitoredTarget, health: TargetHealth) -> List[Breach]:
        return evaluate_target(target, health)

    def evaluate_system(self, availability_percent: float) -> List[Breach]:
        return evaluate_system(availability_percent, self.availability)
