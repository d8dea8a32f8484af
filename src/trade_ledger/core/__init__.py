"""Core types shared by every ledger component."""
