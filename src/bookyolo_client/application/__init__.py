"""Application services: session, balance reconciliation, domain client and account flows."""
