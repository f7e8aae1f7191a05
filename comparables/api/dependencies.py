"""
Shared engine objects for request handlers.

The lifespan handler in main.py stores one instance of each on app.state; tests
replace them through app.dependency_overrides.
"""

from fastapi import Request

from comparables.orchestrator import ComparableSalesOrchestrator
from comparables.query import QueryAuthority, QueryGenerator
from comparables.settings_store import SettingsStore


def get_orchestrator(request: Request) -> ComparableSalesOrchestrator:
    return request.app.state.orchestrator


def get_authority(request: Request) -> QueryAuthority:
    return request.app.state.authority


def get_generator(request: Request) -> QueryGenerator:
    return request.app.state.generator


def get_settings_store(request: Request) -> SettingsStore:
    return request.app.state.settings_store
