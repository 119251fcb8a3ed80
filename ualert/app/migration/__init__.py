"""
migration — Legacy notification channels → unified receivers and routes.

Sub-modules:
    models           — data structures shared across the migration
    secure_settings  — settings validation and secret extraction
    receivers        — Receiver Builder (channel → receiver, index)
    defaults         — Default Receiver Consolidator (root route)
    routes           — Per-Alert Route Synthesizer (contact matchers)
    filters          — Receiver Filter (de-duplication against defaults)
    stores           — legacy source / configuration sink interfaces
    schemas          — wire format of the migrated configuration
    service          — orchestration of a full run
"""
