"""HTTP surface over an explorer session."""
