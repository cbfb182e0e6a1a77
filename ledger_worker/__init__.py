"""Ledger Worker: background job processing for bank account aggregation and budgeting."""
