"""
QuoteFlow: RFQ management for sales and purchasing teams

Packages:
    api/        Dashboard routes and templates
    forms/      Server-side form validation
    agents/     Notifications and free-text RFQ extraction
    knowledge/  Historical quote matching, corpus cache, statistics
    core/       Records, persistence, workflow, configuration
"""
