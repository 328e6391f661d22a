"""The ledger of spec saves awaiting implementation."""
