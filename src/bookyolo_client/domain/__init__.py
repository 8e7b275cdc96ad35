"""Pure domain types for requests and scan balances."""
