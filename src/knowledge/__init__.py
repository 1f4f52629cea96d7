"""Historical quote data.

Modules:
    similar_quotes: Find recent quotes for products like the one being entered
    corpus        : Cached snapshot of all RFQs for the matcher
    stats         : Sales / purchasing / admin statistics
"""
