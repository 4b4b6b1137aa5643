"""Reference appointment store and doctor directory."""
