"""Test helper utilities for Recruit Notify tests."""

from .factories import (
    SCHEDULED_AT,
    FakeTransport,
    HiringScenario,
    SentMessage,
    add_application,
    add_job,
    add_skeleton,
    add_user,
    make_application,
    make_interview,
    make_user,
    seed_hiring_scenario,
)

__all__ = [
    "SCHEDULED_AT",
    "FakeTransport",
    "HiringScenario",
    "SentMessage",
    "add_application",
    "add_job",
    "add_skeleton",
    "add_user",
    "make_application",
    "make_interview",
    "make_user",
    "seed_hiring_scenario",
]
