"""Daily single-message SMS dispatcher."""
