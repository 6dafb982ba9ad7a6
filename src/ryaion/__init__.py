"""Ryaion Vault - portfolio ledger, live valuation and one-shot price alerts."""
