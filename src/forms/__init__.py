"""Server-side form validation.

Key exports:
    validate_rfq_form()   : New RFQ: customer, purchasers, products
    validate_quote_form() : Purchaser quote: price, delivery date, notes
    validate_user_form()  : New account
    PRODUCT_FORM_CONFIGS  : Per-series product field layouts
"""
