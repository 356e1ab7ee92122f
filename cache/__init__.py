"""Key/value stores and the latest-release cache built on them."""
