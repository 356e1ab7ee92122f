"""Resource-specific GitHub API wrappers with caching and TTL policy.

Each module in this package owns:
- the API call for one resource (via GitHubReleasesClient / BoundedFetcher)
- the cache key format
- the TTL policy for that resource
"""
