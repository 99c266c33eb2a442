from __future__ import annotations

TOKEN_KIND_PURCHASE = "PURCHASE"
TOKEN_KIND_USED = "USED"
TOKEN_KIND_REFUND = "REFUND"
TOKEN_KIND_EXPIRED = "EXPIRED"

CREDIT_KINDS = frozenset({TOKEN_KIND_PURCHASE, TOKEN_KIND_REFUND})
DEBIT_KINDS = frozenset({TOKEN_KIND_USED, TOKEN_KIND_EXPIRED})

MISSION_BASE_TOKEN_COST = 10
FEATURED_LISTING_TOKEN_COST = 5
CONTACT_TOKEN_COST = 1

CUSTOM_PACKAGE_CODE = "CUSTOM"
CUSTOM_PACKAGE_MIN_TOKENS = 1
CUSTOM_PACKAGE_MAX_TOKENS = 500
CUSTOM_PACKAGE_PRICE_PER_TOKEN = 15
TOKEN_PRICE_CURRENCY = "MAD"

TRANSACTION_HISTORY_DEFAULT_LIMIT = 50
TRANSACTION_HISTORY_MAX_LIMIT = 200
