"""Green Minting token ledger, gasless transfer authorizations and vesting lock."""

__version__ = "1.0.0"
