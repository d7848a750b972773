"""Dashboard module - KPI and payment widgets."""
