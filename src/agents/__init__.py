"""Notifications and external service integrations.

Modules:
    notify_agent  : In-app bell notifications (per-recipient, translated)
    rfq_extractor : Free text → RFQ form fields (LLM-enhanced, rule-based fallback)
"""
